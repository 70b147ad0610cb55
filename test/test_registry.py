from pytest import raises

from aiodispose.registry import ExitRegistry, RegistrationToken


class TestExitRegistry:
    def test_register_returns_unique_tokens(self, registry):
        first = registry.register(lambda: None)
        second = registry.register(lambda: None)

        assert isinstance(first, RegistrationToken)
        assert first is not second
        assert first != second
        assert first in registry and second in registry
        assert len(registry) == 2

    def test_register_same_callback_twice(self, registry):
        def callback():
            pass

        first = registry.register(callback)
        second = registry.register(callback)
        assert first != second
        assert len(registry) == 2

    def test_register_rejects_non_callables(self, registry):
        with raises(TypeError):
            registry.register(42)
        assert len(registry) == 0

    def test_deregister(self, registry):
        token = registry.register(lambda: None)
        assert registry.deregister(token)
        assert token not in registry
        assert len(registry) == 0

    def test_deregister_unknown_token_is_noop(self, registry):
        token = registry.register(lambda: None)
        assert registry.deregister(token)
        assert not registry.deregister(token)
        assert not registry.deregister(RegistrationToken())

    def test_drain_runs_callbacks_in_insertion_order(self, registry):
        calls = []
        for index in range(5):
            registry.register(lambda index=index: calls.append(index))

        assert registry.drain_and_run() == 5
        assert calls == [0, 1, 2, 3, 4]
        assert registry.drained

    def test_drain_skips_deregistered_callbacks(self, registry):
        calls = []
        registry.register(lambda: calls.append("a"))
        token = registry.register(lambda: calls.append("b"))
        registry.register(lambda: calls.append("c"))

        registry.deregister(token)
        registry.drain_and_run()

        assert calls == ["a", "c"]

    def test_drain_runs_only_once(self, registry):
        calls = []
        registry.register(lambda: calls.append(1))

        assert registry.drain_and_run() == 1
        assert registry.drain_and_run() == 0
        assert calls == [1]

    def test_drain_continues_after_failures(self, registry, caplog):
        calls = []

        def fail():
            calls.append("fail")
            raise RuntimeError("cleanup failed")

        registry.register(lambda: calls.append("before"))
        registry.register(fail)
        registry.register(lambda: calls.append("after"))

        assert registry.drain_and_run() == 3
        assert calls == ["before", "fail", "after"]

        errors = [record for record in caplog.records if record.levelname == "ERROR"]
        assert len(errors) == 1
        assert errors[0].exc_info[1].args == ("cleanup failed",)

    def test_deregister_after_drain(self, registry):
        token = registry.register(lambda: None)
        registry.drain_and_run()

        assert token not in registry
        assert not registry.deregister(token)

    def test_drain_empties_registry(self, registry):
        for _ in range(3):
            registry.register(lambda: None)

        registry.drain_and_run()

        assert len(registry) == 0
        assert registry.drained

    def test_register_after_drain(self, registry):
        calls = []
        registry.drain_and_run()

        token = registry.register(lambda: calls.append(1))
        assert token in registry
        assert len(registry) == 1

        # Drain runs only once; the caller must clean up by itself
        assert registry.drain_and_run() == 0
        assert calls == []
        assert registry.deregister(token)
        assert len(registry) == 0

    def test_token_repr(self):
        token = RegistrationToken()
        assert repr(token).startswith("<RegistrationToken #")

    def test_fresh_registry_is_not_drained(self):
        registry = ExitRegistry()
        assert not registry.drained
        assert len(registry) == 0
