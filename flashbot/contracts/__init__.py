"""ABIs used by the example bundle scripts."""

import json
from importlib import resources
from typing import Any, List


def load_contract_abi(name: str) -> List[Any]:
    """Load a packaged ABI by file name, with or without the ``.json`` suffix."""
    filename = name if name.endswith(".json") else f"{name}.json"
    abi_file = resources.files(__package__).joinpath(filename)
    if not abi_file.is_file():
        raise FileNotFoundError(f"no packaged ABI named {name!r}")
    return json.loads(abi_file.read_text(encoding="utf-8"))


__all__ = ["load_contract_abi"]
