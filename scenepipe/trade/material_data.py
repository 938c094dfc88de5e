from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class MaterialData:
    """Named material attributes, passed between stages unchanged."""
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.attributes[key]

    def __contains__(self, key: str) -> bool:
        return key in self.attributes

    @property
    def attribute_count(self) -> int:
        return len(self.attributes)
