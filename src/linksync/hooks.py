"""
Record lifecycle hooks for linksync.

A host application calls ``HookManager.execute`` when a record has been
inserted or updated, or is about to be deleted. Registered callbacks (such as
the link dispatcher) receive a ``HookContext`` describing the record.

Supported hooks:
- post_insert: after a new record has been stored
- post_update: after a changed record has been stored (``previous`` is the old state)
- pre_delete: before a record is removed

There is no module-level manager; applications own their ``HookManager``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .records import Record

logger = logging.getLogger(__name__)


class HookType(Enum):
    """Available record lifecycle hooks."""

    POST_INSERT = "post_insert"
    POST_UPDATE = "post_update"
    PRE_DELETE = "pre_delete"


@dataclass
class HookContext:
    """
    Context passed to hook callbacks.

    Callbacks may attach results, report errors or signal that the remaining
    callbacks must not run.
    """

    record: Optional[Record] = None
    previous: Optional[Record] = None

    results: List[Any] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    abort: bool = False
    abort_reason: str = ""

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def signal_abort(self, reason: str) -> None:
        """Signal that processing should be aborted."""
        self.abort = True
        self.abort_reason = reason


HookCallback = Callable[[HookContext], None]


@dataclass
class RegisteredHook:
    """Information about a registered hook callback."""

    callback: HookCallback
    name: str
    priority: int = 100
    abort_on_error: bool = False


def _as_hook_type(hook_type: Union[HookType, str]) -> HookType:
    if isinstance(hook_type, HookType):
        return hook_type
    try:
        return HookType(hook_type)
    except ValueError:
        valid_types = [h.value for h in HookType]
        raise ValueError(f"Invalid hook type '{hook_type}'. Valid types: {valid_types}")


class HookManager:
    """Registration and execution of lifecycle hook callbacks."""

    def __init__(self):
        self._hooks: Dict[HookType, List[RegisteredHook]] = {
            hook_type: [] for hook_type in HookType
        }

    def register(
        self,
        hook_type: Union[HookType, str],
        callback: HookCallback,
        *,
        name: Optional[str] = None,
        priority: int = 100,
        abort_on_error: bool = False,
    ) -> None:
        """
        Register a hook callback.

        Args:
            hook_type: The type of hook to register for.
            callback: The callback function to execute.
            name: Optional name for this hook registration.
            priority: Execution priority (lower = earlier). Default is 100.
            abort_on_error: If True, stop running later callbacks when this one fails.

        Raises:
            ValueError: If hook_type is invalid.
        """
        hook_type = _as_hook_type(hook_type)
        hook_name = name or callback.__name__
        self._hooks[hook_type].append(
            RegisteredHook(
                callback=callback,
                name=hook_name,
                priority=priority,
                abort_on_error=abort_on_error,
            )
        )
        self._hooks[hook_type].sort(key=lambda h: h.priority)

        logger.debug(
            f"Registered hook '{hook_name}' for {hook_type.value} "
            f"(priority: {priority}, abort_on_error: {abort_on_error})"
        )

    def on(
        self,
        hook_type: Union[HookType, str],
        *,
        name: Optional[str] = None,
        priority: int = 100,
        abort_on_error: bool = False,
    ) -> Callable[[HookCallback], HookCallback]:
        """
        Decorator form of ``register``.

        Example:
            @hooks.on("post_insert")
            def audit(context: HookContext) -> None:
                ...
        """
        def decorator(callback: HookCallback) -> HookCallback:
            self.register(
                hook_type,
                callback,
                name=name,
                priority=priority,
                abort_on_error=abort_on_error,
            )
            return callback

        return decorator

    def unregister(self, hook_type: Union[HookType, str], name: Optional[str] = None) -> int:
        """
        Unregister hook callbacks, all of them or only those called ``name``.

        Returns:
            Number of hooks unregistered.
        """
        hook_type = _as_hook_type(hook_type)
        hooks = self._hooks[hook_type]
        self._hooks[hook_type] = [h for h in hooks if name and h.name != name]
        removed = len(hooks) - len(self._hooks[hook_type])
        if removed:
            logger.debug(f"Unregistered {removed} hooks from {hook_type.value}")
        return removed

    def execute(self, hook_type: Union[HookType, str], context: HookContext) -> HookContext:
        """
        Execute all registered callbacks for a hook type.

        Exceptions raised by a callback are recorded in ``context.errors``.
        """
        hook_type = _as_hook_type(hook_type)
        hooks = self._hooks[hook_type]
        if not hooks:
            return context

        logger.debug(f"Executing {len(hooks)} hooks for {hook_type.value}")

        for registered in hooks:
            if context.abort:
                logger.warning(
                    f"Hook execution aborted before '{registered.name}': "
                    f"{context.abort_reason}"
                )
                break

            try:
                registered.callback(context)
            except Exception as e:
                error_msg = f"Hook '{registered.name}' raised an error: {e}"
                logger.warning(error_msg)
                logger.debug("Hook error details:", exc_info=True)
                context.add_error(error_msg)

                if registered.abort_on_error:
                    context.signal_abort(f"Hook '{registered.name}' failed: {e}")
                    break

        if context.errors:
            logger.warning(f"{hook_type.value} hooks completed with {len(context.errors)} error(s)")

        return context

    def list_hooks(self) -> Dict[str, List[str]]:
        """Map hook type names to the registered callback names."""
        return {ht.value: [h.name for h in hooks] for ht, hooks in self._hooks.items()}

    def clear(self) -> None:
        for hook_type in HookType:
            self._hooks[hook_type].clear()

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())
