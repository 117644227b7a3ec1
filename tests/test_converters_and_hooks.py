"""Tests for string constant conversion and provision hooks."""

import threading
from typing import Any

import pytest

from ditree import (
    Binder,
    Component,
    DITreeConstructionError,
    DITreeUnresolvableDependencyError,
    Injector,
    Key,
    create_injector,
)

Port = Key(int, Component("port"))


class Service:
    def __init__(self) -> None:
        self.tags: list[str] = []


class Other:
    pass


def binds_port(binder: Binder) -> None:
    binder.bind_constant("8080", qualifier=Component("port"))


def binds_int_converter(binder: Binder) -> None:
    binder.convert_to_types(lambda target: target is int, lambda value, _target: int(value))


def tag_with(tag: str) -> Any:
    def hook(_key: Key, instance: Service) -> Service:
        instance.tags.append(tag)
        return instance

    return hook


class TestConverters:
    def test_converts_string_constant(self) -> None:
        injector = create_injector(binds_port, binds_int_converter)

        assert injector.get_instance(Port) == 8080
        assert injector.get_binding(Port) is not None

    def test_converted_binding_is_placed_at_deepest_contributor(self) -> None:
        root = create_injector(binds_int_converter)
        child = root.create_child_injector(binds_port)
        grandchild = child.create_child_injector()

        assert grandchild.get_instance(Port) == 8080
        assert child.get_binding(Port) is not None
        assert root.get_binding(Port) is None
        assert grandchild.get_binding(Port) is None

    def test_without_converter_key_is_unresolvable(self) -> None:
        injector = create_injector(binds_port)

        with pytest.raises(DITreeUnresolvableDependencyError):
            injector.get_instance(Port)

    def test_converter_failure(self) -> None:
        injector = create_injector(
            lambda binder: binder.bind_constant("eighty", qualifier=Component("port")),
            binds_int_converter,
        )

        with pytest.raises(DITreeConstructionError) as exc_info:
            injector.get_instance(Port)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert "when converting 'eighty'" in str(exc_info.value)

    def test_converter_runs_outside_the_tree_lock(self) -> None:
        """Another thread can create a child while a converter is running."""
        root = create_injector(binds_port)
        created: list[Injector] = []

        def convert(value: str, _target: Any) -> int:
            thread = threading.Thread(target=lambda: created.append(root.create_child_injector()))
            thread.start()
            thread.join(timeout=5)
            return int(value)

        child = root.create_child_injector(
            lambda binder: binder.convert_to_types(lambda target: target is int, convert),
        )

        assert child.get_instance(Port) == 8080
        assert len(created) == 1

    def test_converter_returning_none(self) -> None:
        injector = create_injector(
            binds_port,
            lambda binder: binder.convert_to_types(lambda target: target is int, lambda *_: None),
        )

        with pytest.raises(DITreeConstructionError, match="Received None converting '8080'"):
            injector.get_instance(Port)


class TestProvisionHooks:
    def test_hooks_run_root_first(self) -> None:
        root = create_injector(
            lambda binder: binder.bind_interceptor(lambda key: key == Key(Service), tag_with("root")),
        )
        child = root.create_child_injector(
            lambda binder: binder.bind_interceptor(
                lambda key: key == Key(Service),
                tag_with("child"),
            ),
        )

        grandchild = child.create_child_injector(lambda binder: binder.bind(Service))

        assert grandchild.get_instance(Service).tags == ["root", "child"]

    def test_hooks_are_taken_from_the_declaring_injector(self) -> None:
        """A just-in-time binding placed on the root ignores hooks of deeper injectors."""
        root = create_injector(
            lambda binder: binder.bind_interceptor(lambda key: key == Key(Service), tag_with("root")),
        )
        child = root.create_child_injector(
            lambda binder: binder.bind_interceptor(
                lambda key: key == Key(Service),
                tag_with("child"),
            ),
        )

        assert child.get_instance(Service).tags == ["root"]
        assert root.get_binding(Service) is not None

    def test_hooks_only_apply_to_matching_keys(self) -> None:
        calls: list[Key] = []

        def record(key: Key, instance: object) -> object:
            calls.append(key)
            return instance

        injector = create_injector(
            lambda binder: binder.bind_interceptor(lambda key: key == Key(Service), record),
        )
        injector.get_instance(Other)
        injector.get_instance(Service)

        assert calls == [Key(Service)]

    def test_hooks_can_replace_instances(self, injector: Injector) -> None:
        replacement = Service()
        child = injector.create_child_injector(
            lambda binder: binder.bind_interceptor(
                lambda key: key == Key(Service),
                lambda _key, _instance: replacement,
            ),
            lambda binder: binder.bind(Service),
        )

        assert child.get_instance(Service) is replacement

    def test_hooks_do_not_apply_to_instance_bindings(self) -> None:
        instance = Service()

        def configure(binder: Binder) -> None:
            binder.bind(Service).to_instance(instance)
            binder.bind_interceptor(lambda key: key == Key(Service), tag_with("hooked"))

        assert create_injector(configure).get_instance(Service).tags == []

    def test_hook_failure(self) -> None:
        def fail(_key: Key, _instance: object) -> object:
            msg = "hook failed"
            raise RuntimeError(msg)

        injector = create_injector(
            lambda binder: binder.bind_interceptor(lambda key: key == Key(Service), fail),
        )

        with pytest.raises(DITreeConstructionError) as exc_info:
            injector.get_instance(Service)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "Error in provision hook" in str(exc_info.value)
