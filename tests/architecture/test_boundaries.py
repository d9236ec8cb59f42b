from pytest_archon import archrule


def test_domain_independence() -> None:
    """
    Domain primitives and the service depend only on ports.
    They must never reach into concrete adapters or framework integrations.
    """
    (
        archrule("domain_is_independent")
        .match("route_access.service")
        .match("route_access.policy")
        .match("route_access.codes")
        .match("route_access.clock")
        .match("route_access.models")
        .match("route_access.exceptions")
        .match("route_access.observability")
        .should_not_import("route_access.adapters*")
        .should_not_import("route_access.contrib*")
        .should_not_import("sqlalchemy*")
        .should_not_import("fastapi*")
        .should_not_import("aiosmtplib*")
        .check("route_access", skip_type_checking=True)
    )


def test_ports_layering() -> None:
    """
    Ports (interfaces) should not depend on Adapters (implementations).
    """
    (
        archrule("ports_layering")
        .match("route_access.ports*")
        .should_not_import("route_access.adapters*")
        .should_not_import("route_access.contrib*")
        .should_not_import("route_access.service")
        .check("route_access", skip_type_checking=True)
    )


def test_adapters_do_not_depend_on_contrib() -> None:
    """
    Persistence and delivery adapters sit below the web integration.
    """
    (
        archrule("adapters_below_contrib")
        .match("route_access.adapters*")
        .should_not_import("route_access.contrib*")
        .should_not_import("route_access.service")
        .check("route_access", skip_type_checking=True)
    )


def test_adapters_are_isolated_from_each_other() -> None:
    """
    Memory, SQLAlchemy and email adapters are interchangeable.
    """
    (
        archrule("memory_adapter_isolation")
        .match("route_access.adapters.memory*")
        .should_not_import("route_access.adapters.sqlalchemy*")
        .should_not_import("route_access.adapters.email*")
        .check("route_access", skip_type_checking=True)
    )
    (
        archrule("sqlalchemy_adapter_isolation")
        .match("route_access.adapters.sqlalchemy*")
        .should_not_import("route_access.adapters.memory*")
        .should_not_import("route_access.adapters.email*")
        .check("route_access", skip_type_checking=True)
    )
