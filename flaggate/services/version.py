from typing import List, Optional


def _components(version: str) -> List[int]:
    parts = []
    for raw in version.split("."):
        try:
            parts.append(int(raw))
        except ValueError:
            parts.append(0)
    return parts


def is_at_least(current: Optional[str], required: Optional[str]) -> bool:
    """Dot-separated comparison; equal versions count as satisfied.

    Missing or non-numeric components compare as 0, so "1.2" == "1.2.0".
    An empty version on either side can never satisfy the requirement.
    """
    if not current or not required:
        return False
    lhs = _components(current)
    rhs = _components(required)
    for i in range(max(len(lhs), len(rhs))):
        a = lhs[i] if i < len(lhs) else 0
        b = rhs[i] if i < len(rhs) else 0
        if a > b:
            return True
        if a < b:
            return False
    return True
