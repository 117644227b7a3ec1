"""Tests for parent/child injector behavior."""

import gc
from abc import ABC

import pytest

from ditree import (
    Binder,
    Component,
    DITreeChildBlocksParentError,
    DITreeConverterConflictError,
    DITreeCreationError,
    DITreeDuplicateBindingError,
    DITreeParentBlocksChildError,
    DITreeUnresolvedScopeError,
    Injector,
    Key,
    ScopeTag,
    SingletonScope,
    create_injector,
    implemented_by,
    matches_any,
    scoped,
    singleton,
)

MyScope = ScopeTag("my_scope")


@singleton
class A:
    pass


class B:
    pass


class RealB(B):
    pass


class C:
    intercepted = False


class D:
    def __init__(self, injector: Injector) -> None:
        self.injector = injector


class E:
    def __init__(self, injector: Injector) -> None:
        self.injector = injector


class G(ABC):  # noqa: B024
    pass


@scoped(MyScope)
class F(G):
    pass


implemented_by(F)(G)


class Plain:
    pass


def binds_a(binder: Binder) -> None:
    binder.bind(A).to_instance(A())


def binds_b(binder: Binder) -> None:
    binder.bind(B).to(RealB)


def binds_d(binder: Binder) -> None:
    binder.bind(D)


def binds_my_scope(binder: Binder) -> None:
    binder.bind_scope(MyScope, SingletonScope())


def binds_list_converter(binder: Binder) -> None:
    binder.convert_to_types(matches_any, lambda _value, _target: [])


def binds_string_named_b(binder: Binder) -> None:
    binder.bind_constant("buzz", qualifier=Component("B"))


class TestExplicitBindings:
    def test_parent_and_child_cannot_share_explicit_bindings(self) -> None:
        parent = create_injector(binds_a)

        with pytest.raises(DITreeCreationError) as exc_info:
            parent.create_child_injector(binds_a)

        (error,) = exc_info.value.errors
        assert isinstance(error, DITreeDuplicateBindingError)
        message = str(exc_info.value)
        assert f"{Key(A)} was bound multiple times." in message
        assert "1  : binds_a (" in message
        assert "2  : binds_a (" in message

    def test_bindings_inherited(self) -> None:
        parent = create_injector(binds_b)
        child = parent.create_child_injector()

        assert type(child.get_instance(B)) is RealB

    def test_child_bindings_not_visible_to_parent(self) -> None:
        parent = create_injector()
        child = parent.create_child_injector(binds_b)

        assert parent.get_binding(B) is None
        assert child.get_binding(B) is not None

    def test_get_binding_does_not_search_ancestors(self) -> None:
        parent = create_injector(binds_b)
        child = parent.create_child_injector()

        assert child.get_binding(B) is None
        assert child.get_instance(B) is not None

    def test_cousins_may_bind_the_same_key(self) -> None:
        root = create_injector()
        left = root.create_child_injector().create_child_injector(binds_b)
        right = root.create_child_injector(lambda binder: binder.bind(B).to_instance(B()))

        assert type(left.get_instance(B)) is RealB
        assert type(right.get_instance(B)) is B


class TestJustInTimeBindings:
    def test_parent_jit_binding_wont_clobber_child_binding(self) -> None:
        parent = create_injector()
        child = parent.create_child_injector(binds_a)

        with pytest.raises(DITreeChildBlocksParentError) as exc_info:
            parent.get_instance(A)

        message = str(exc_info.value)
        assert (
            f"Unable to create binding for {Key(A)} because it was already configured on "
            "one or more child injectors." in message
        )
        assert "binds_a (" in message
        assert parent.get_binding(A) is None
        assert child.get_binding(A) is not None

    def test_child_cannot_bind_to_a_parent_jit_binding(self) -> None:
        parent = create_injector()
        parent.get_instance(A)

        with pytest.raises(DITreeCreationError) as exc_info:
            parent.create_child_injector(binds_a)

        (error,) = exc_info.value.errors
        assert isinstance(error, DITreeParentBlocksChildError)
        assert (
            f"A just-in-time binding to {Key(A)} was already configured on a parent injector."
            in str(error)
        )

    def test_grandchild_cannot_bind_to_a_root_jit_binding(self) -> None:
        root = create_injector()
        child = root.create_child_injector()
        child.get_instance(A)

        with pytest.raises(DITreeCreationError) as exc_info:
            child.create_child_injector(binds_a)

        assert isinstance(exc_info.value.errors[0], DITreeParentBlocksChildError)

    def test_just_in_time_bindings_are_shared_with_parent_if_possible(self) -> None:
        parent = create_injector()
        child = parent.create_child_injector()
        assert child.get_instance(A) is parent.get_instance(A)

        another_child = parent.create_child_injector()
        assert another_child.get_instance(A) is parent.get_instance(A)

        grandchild = child.create_child_injector()
        assert grandchild.get_instance(A) is parent.get_instance(A)

        assert parent.get_binding(A) is not None
        assert child.get_binding(A) is None

    def test_jit_binding_falls_back_to_requester_when_sibling_binds_key(self) -> None:
        root = create_injector()
        binding_child = root.create_child_injector(binds_b)
        requesting_child = root.create_child_injector()

        instance = requesting_child.get_instance(B)

        assert type(instance) is B
        assert root.get_binding(B) is None
        assert requesting_child.get_binding(B) is not None
        assert type(binding_child.get_instance(B)) is RealB

    def test_child_jit_binding_blocks_parent_after_sibling_is_released(self) -> None:
        """A key keeps one binding per line even once the explicit sibling is gone."""
        root = create_injector()
        binding_child = root.create_child_injector(binds_b)
        requesting_child = root.create_child_injector()
        child_binding = requesting_child.get_provider(B).binding
        assert child_binding.injector is requesting_child

        del binding_child
        gc.collect()

        with pytest.raises(DITreeChildBlocksParentError) as exc_info:
            root.get_provider(B)

        assert "already configured on one or more child injectors" in str(exc_info.value)
        assert root.get_binding(B) is None
        assert requesting_child.get_provider(B).binding is child_binding
        grandchild = requesting_child.create_child_injector()
        assert grandchild.get_provider(B).binding is child_binding

    def test_released_child_no_longer_blocks_parent(self) -> None:
        parent = create_injector()
        child = parent.create_child_injector(binds_a)
        assert parent.live_children() == (child,)

        del child
        gc.collect()

        assert parent.live_children() == ()
        assert isinstance(parent.get_instance(A), A)


class TestGetParent:
    def test_get_parent(self) -> None:
        top = create_injector(binds_a)
        middle = top.create_child_injector(binds_b)
        bottom = middle.create_child_injector()

        assert bottom.get_parent() is middle
        assert middle.get_parent() is top
        assert top.get_parent() is None
        assert bottom.parent is middle


class TestInjectorInjection:
    def test_injector_injection_spanning_injectors(self) -> None:
        parent = create_injector()
        child = parent.create_child_injector(binds_d)

        d = child.get_instance(D)
        assert d.injector is child

        e = child.get_instance(E)
        assert e.injector is parent

    def test_several_layers_of_hierarchy(self) -> None:
        top = create_injector(binds_a)
        left = top.create_child_injector()
        left_left = left.create_child_injector(binds_d)
        right = top.create_child_injector(binds_d)

        assert left_left.get_instance(D).injector is left_left
        assert right.get_instance(D).injector is right
        assert left_left.get_instance(E).injector is top
        assert top.get_instance(A) is left_left.get_instance(A)

        left_right = left.create_child_injector(binds_d)
        assert left_right.get_instance(D).injector is left_right

        with pytest.raises(DITreeChildBlocksParentError):
            top.get_instance(D)

        with pytest.raises(DITreeChildBlocksParentError):
            left.get_instance(D)


class TestInheritedConfiguration:
    def test_scopes_inherited(self) -> None:
        parent = create_injector(binds_my_scope)
        child = parent.create_child_injector(
            lambda binder: binder.bind(Plain).in_scope(MyScope),
        )

        assert child.get_instance(Plain) is child.get_instance(Plain)

    def test_interceptors_inherited(self) -> None:
        def intercept(_key: Key, instance: C) -> C:
            instance.intercepted = True
            return instance

        parent = create_injector(
            lambda binder: binder.bind_interceptor(lambda key: key == Key(C), intercept),
        )
        child = parent.create_child_injector(lambda binder: binder.bind(C))

        assert child.get_instance(C).intercepted is True

    def test_type_converters_inherited(self) -> None:
        parent = create_injector(binds_list_converter)
        child = parent.create_child_injector(binds_string_named_b)

        assert child.get_instance(Key(list, Component("B"))) == []

    def test_type_converters_conflicting(self) -> None:
        parent = create_injector(binds_list_converter)
        child = parent.create_child_injector(binds_list_converter, binds_string_named_b)

        with pytest.raises(DITreeConverterConflictError) as exc_info:
            child.get_instance(Key(list, Component("B")))

        assert "Multiple converters can convert" in str(exc_info.value)


class TestScopeBoundInChildOnly:
    def test_scope_bound_in_child_injector_only(self) -> None:
        parent = create_injector()
        child = parent.create_child_injector(binds_my_scope)

        with pytest.raises(DITreeUnresolvedScopeError) as exc_info:
            parent.get_provider(F)

        message = str(exc_info.value)
        assert f"No scope is bound to {MyScope!r}." in message
        assert f"at {Key(F)}" in message
        assert f"while locating {Key(F)}" in message

        assert child.get_provider(F).get() is not None

    def test_error_in_parent_but_okay_in_child(self) -> None:
        def configure(binder: Binder) -> None:
            binder.bind_scope(MyScope, SingletonScope())
            binder.bind(object).to(F)

        parent = create_injector()
        child = parent.create_child_injector(configure)

        one = child.get_instance(object)
        two = child.get_instance(object)
        assert one is two
        assert child.get_binding(F) is not None
        assert parent.get_binding(F) is None

    def test_error_in_parent_and_child(self) -> None:
        parent = create_injector()
        child = parent.create_child_injector()

        with pytest.raises(DITreeUnresolvedScopeError) as exc_info:
            child.get_instance(G)

        message = str(exc_info.value)
        assert f"No scope is bound to {MyScope!r}." in message
        assert f"at {Key(F)}" in message
        assert f"at {Key(G)}" in message
        assert message.index(f"while locating {Key(F)}") < message.index(
            f"while locating {Key(G)}",
        )
        assert child.get_binding(G) is None
        assert parent.get_binding(G) is None
