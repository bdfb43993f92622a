#=============================================================================
# File        : memscope/introspection.py
# Project     : MemScope v1.0
# Component   : Introspection - Component Tree Model and Commit Observer
# Description : Host-neutral component tree plus the commit/unmount hook
#               • ComponentNode / HookRecord tree supplied by the host
#               • IntrospectionHook exposing on_commit / on_unmount slots
#               • CommitObserver that wraps and restores host callbacks
#               • Re-entrancy guard and fail-safe analysis wrappers
# Author      : MemScope Contributors
# Version     : 1.0.0
# Technology  : Python 3.8+, threading
# Standards   : PEP 8, Type Hints, Production Safety
# Created     : 2026-10-18
# Modified    : 2026-10-18 (Initial creation)
# Dependencies: dataclasses, logging, threading, typing
# License     : MIT License
# Copyright   : © 2026 MemScope Contributors. Released under MIT License.
#=============================================================================

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

_logger = logging.getLogger(__name__)

# Hooks currently wrapped by an observer: id(hook) -> observer repr
_patch_registry: Dict[int, str] = {}
_patch_registry_lock = threading.Lock()

_CALLBACK_SLOTS = ('on_commit', 'on_unmount')


@dataclass(eq=False)
class HookRecord:
    """One hook slot of a component instance."""
    kind: str
    value: Any = None
    deps: Optional[List[Any]] = None
    is_effect: bool = False
    has_cleanup: bool = False


@dataclass(eq=False)
class ComponentNode:
    """
    One node of the host's rendered tree.

    Only nodes with ``is_component`` set are attributed; host elements and
    fragments are traversed for their children.
    """
    name: str
    props: Any = None
    state: Any = None
    hooks: List[HookRecord] = field(default_factory=list)
    children: List["ComponentNode"] = field(default_factory=list)
    ref: Any = None
    is_component: bool = True

    def add_child(self, child: "ComponentNode") -> "ComponentNode":
        self.children.append(child)
        return child

    def iter_tree(self) -> Iterator["ComponentNode"]:
        """Depth-first, children in order, without recursion."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class IntrospectionHook:
    """
    Notification surface a host exposes for tree commits and unmounts.

    Hosts call ``commit(root)`` after each render and ``unmount(node)``
    when a component leaves the tree.
    """

    def __init__(self, on_commit: Optional[Callable[..., Any]] = None,
                 on_unmount: Optional[Callable[..., Any]] = None) -> None:
        self.on_commit = on_commit
        self.on_unmount = on_unmount

    def commit(self, root: ComponentNode) -> None:
        if self.on_commit is not None:
            self.on_commit(root)

    def unmount(self, node: ComponentNode) -> None:
        if self.on_unmount is not None:
            self.on_unmount(node)


class CommitObserver:
    """
    Wraps an IntrospectionHook's callbacks with analysis handlers.

    Pre-existing callbacks are always chained to and are restored verbatim
    by ``uninstall``. Handler exceptions are logged and never reach the host.
    """

    def __init__(self, hook: IntrospectionHook,
                 on_commit: Callable[[ComponentNode], None],
                 on_unmount: Callable[[ComponentNode], None]) -> None:
        self._hook = hook
        self._handlers = {'on_commit': on_commit, 'on_unmount': on_unmount}
        self._original_callbacks: Dict[str, Optional[Callable]] = {}
        self._wrappers: Dict[str, Callable] = {}
        self._local = threading.local()
        self._installed = False
        self._active = False

    @property
    def is_installed(self) -> bool:
        return self._installed

    def install(self) -> bool:
        if self._installed:
            return False

        hook_id = id(self._hook)
        with _patch_registry_lock:
            if hook_id in _patch_registry:
                _logger.warning(f"Introspection hook already wrapped by {_patch_registry[hook_id]}")
            _patch_registry[hook_id] = repr(self)

        for slot in _CALLBACK_SLOTS:
            original = getattr(self._hook, slot, None)
            self._original_callbacks[slot] = original
            wrapper = self._wrap(slot, self._handlers[slot], original)
            self._wrappers[slot] = wrapper
            setattr(self._hook, slot, wrapper)

        self._installed = True
        self._active = True
        return True

    def uninstall(self) -> bool:
        if not self._installed:
            return False

        self._active = False
        for slot, original in self._original_callbacks.items():
            current = getattr(self._hook, slot, None)
            if current is self._wrappers.get(slot):
                setattr(self._hook, slot, original)
            else:
                # Someone wrapped over us; leave theirs, ours now only chains
                _logger.warning(f"Introspection callback '{slot}' was replaced after install; leaving it in place")

        with _patch_registry_lock:
            _patch_registry.pop(id(self._hook), None)

        self._original_callbacks.clear()
        self._wrappers.clear()
        self._installed = False
        return True

    def _wrap(self, slot: str, handler: Callable, original: Optional[Callable]) -> Callable:
        def wrapped_callback(*args, **kwargs):
            depth = getattr(self._local, 'depth', 0)
            if self._active and depth == 0:
                self._local.depth = 1
                try:
                    handler(*args, **kwargs)
                except Exception as e:
                    _logger.debug(f"Error in {slot} analysis: {e}")
                finally:
                    self._local.depth = 0
            if original is not None:
                return original(*args, **kwargs)
            return None

        return wrapped_callback

    def __repr__(self) -> str:
        return f"CommitObserver(installed={self._installed})"
