from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import UpdateConflictError, ValidationError
from .expressions import CompiledExpression, PlaceholderTable, UpdateExpressionBuilder


@dataclass
class UpdateIntent:
    set: dict[str, Any] = field(default_factory=dict)
    set_if_not_exists: dict[str, Any] = field(default_factory=dict)
    add: dict[str, Any] = field(default_factory=dict)
    subtract: dict[str, Any] = field(default_factory=dict)
    append: dict[str, list[Any]] = field(default_factory=dict)
    prepend: dict[str, list[Any]] = field(default_factory=dict)
    delete: dict[str, Any] = field(default_factory=dict)
    remove: list[str] = field(default_factory=list)
    remove_at: dict[str, list[int]] = field(default_factory=dict)

    def buckets(self) -> dict[str, list[str]]:
        return {
            "set": list(self.set),
            "set_if_not_exists": list(self.set_if_not_exists),
            "add": list(self.add),
            "subtract": list(self.subtract),
            "append": list(self.append),
            "prepend": list(self.prepend),
            "delete": list(self.delete),
            "remove": list(dict.fromkeys(self.remove)),
            "remove_at": list(self.remove_at),
        }

    def attribute_names(self) -> list[str]:
        out: list[str] = []
        for names in self.buckets().values():
            for name in names:
                if name not in out:
                    out.append(name)
        return out

    def is_empty(self) -> bool:
        return not any(self.buckets().values())

    def copy(self) -> UpdateIntent:
        return UpdateIntent(
            set=dict(self.set),
            set_if_not_exists=dict(self.set_if_not_exists),
            add=dict(self.add),
            subtract=dict(self.subtract),
            append={k: list(v) for k, v in self.append.items()},
            prepend={k: list(v) for k, v in self.prepend.items()},
            delete=dict(self.delete),
            remove=list(self.remove),
            remove_at={k: list(v) for k, v in self.remove_at.items()},
        )

    def check_conflicts(self) -> None:
        seen: dict[str, str] = {}
        for bucket, names in self.buckets().items():
            for name in names:
                other = seen.get(name)
                if other is not None and other != bucket:
                    raise UpdateConflictError(
                        f"attribute '{name}' appears in both '{other}' and '{bucket}' update operations"
                    )
                seen[name] = bucket

    def compile(self, *, prefix: str = "u", table: PlaceholderTable | None = None) -> CompiledExpression:
        if self.is_empty():
            raise ValidationError("no update operations provided")
        self.check_conflicts()

        builder = UpdateExpressionBuilder(prefix=prefix, table=table)
        for name, value in self.set.items():
            builder.set(name, value)
        for name, value in self.set_if_not_exists.items():
            builder.set_if_not_exists(name, value)
        for name, value in self.append.items():
            builder.append(name, value)
        for name, value in self.prepend.items():
            builder.prepend(name, value)
        for name, value in self.subtract.items():
            builder.subtract(name, value)
        for name, value in self.add.items():
            builder.add(name, value)
        for name, value in self.delete.items():
            builder.delete(name, value)
        for name in dict.fromkeys(self.remove):
            builder.remove(name)
        for name, indexes in self.remove_at.items():
            for index in indexes:
                builder.remove_at(name, index)
        return builder.build()
