"""
Multi-document booking steps with explicit compensation.

A booking touches the slot, the interview and the payment as separate
writes. Each write is a Step with an optional undo; when a step raises,
the undos of the steps that already ran execute in reverse order and the
original error propagates.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from mockbook.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Step:
    name: str
    action: Callable[[Dict[str, Any]], Any]
    compensate: Optional[Callable[[Dict[str, Any]], None]] = None


@dataclass
class Saga:
    name: str
    steps: List[Step] = field(default_factory=list)

    def step(self, name: str, action, compensate=None) -> "Saga":
        self.steps.append(Step(name, action, compensate))
        return self

    def run(self, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute the steps in order; each action's return value is stored in
        the context under the step name for later steps to use.
        """
        context = context if context is not None else {}
        done: List[Step] = []
        for step in self.steps:
            try:
                context[step.name] = step.action(context)
            except Exception as e:
                logger.warning(f"[Saga:{self.name}] Step '{step.name}' failed: {e}; compensating {len(done)} step(s)")
                self._compensate(done, context)
                raise
            done.append(step)
        return context

    def _compensate(self, done: List[Step], context: Dict[str, Any]) -> None:
        for step in reversed(done):
            if step.compensate is None:
                continue
            try:
                step.compensate(context)
            except Exception as e:
                # Leave the rest of the rollback running; this one needs an operator
                logger.error(
                    f"[Saga:{self.name}] Compensation for '{step.name}' failed: {e}",
                    exc_info=True,
                )
