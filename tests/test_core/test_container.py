"""Tests for the service container and application wiring."""

import pytest

from will_engine.core.container import ServiceContainer
from will_engine.services.check_in_service import CheckInService
from will_engine.services.lifecycle_scheduler import LifecycleScheduler
from will_engine.services.review_gate import ReviewGate
from will_engine.services.will_service import WillService


class TestServiceContainer:
    def test_factory_is_lazy_and_cached(self):
        container = ServiceContainer()
        built = []
        container.register("thing", lambda c: built.append(1) or object())

        assert built == []
        assert container.get("thing") is container.get("thing")
        assert built == [1]

    def test_factory_receives_container(self):
        container = ServiceContainer()
        container.register_instance("name", "wills")
        container.register("greeting", lambda c: f"hello {c.get('name')}")
        assert container.get("greeting") == "hello wills"

    def test_reregister_drops_cached_instance(self):
        container = ServiceContainer()
        container.register("thing", lambda c: "first")
        assert container.get("thing") == "first"

        container.register("thing", lambda c: "second")
        assert container.get("thing") == "second"

    def test_instance_replaces_factory(self):
        container = ServiceContainer()
        container.register("thing", lambda c: "built")
        container.register_instance("thing", "fake")
        assert container.get("thing") == "fake"

    def test_unknown_service(self):
        with pytest.raises(KeyError, match="not registered"):
            ServiceContainer().get("missing")

    def test_has_and_names(self):
        container = ServiceContainer()
        container.register_instance("b", 1)
        container.register("a", lambda c: 2)
        assert container.has("a") and container.has("b")
        assert not container.has("c")
        assert container.names() == ["a", "b"]


class TestBuildContainer:
    def test_services_share_clock_and_factory(self, container, clock, session_factory):
        wills = container.get("wills")

        assert isinstance(wills, WillService)
        assert isinstance(container.get("check_ins"), CheckInService)
        assert isinstance(container.get("review_gate"), ReviewGate)
        assert wills._clock is clock
        assert wills._session_factory is session_factory

    def test_scheduler_notifies_through_event_bus(self, container, bus):
        scheduler = container.get("scheduler")

        assert isinstance(scheduler, LifecycleScheduler)
        assert scheduler._notifier is bus
        assert container.get("scheduler") is scheduler
