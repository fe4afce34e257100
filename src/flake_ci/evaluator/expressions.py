"""Nix transform expressions passed to `nix eval --apply`."""

from __future__ import annotations

import json
import re
from typing import Sequence

OUT_PATH_EXPR = "drv: drv.outPath"

# Maps every attribute under @LABEL@ to either its full path or the skip token.
# A full path always contains a dot, so it never equals a dot-free skip token.
_DISCOVER_TEMPLATE = """attrs:
let
  label = @LABEL@;
  skip = @SKIP_TOKEN@;
  blocklist = builtins.fromJSON @BLOCKLIST@;
  blocked = name: builtins.elem name blocklist || builtins.elem "${label}.${name}" blocklist;
in
builtins.listToAttrs (map (name: {
  name = "${label}.${name}";
  value = if blocked name then skip else "${label}.${name}";
}) (builtins.attrNames attrs))
"""

_PLACEHOLDER = re.compile(r"@([A-Z_]+)@")


def nix_string(value: str) -> str:
    """Render `value` as a double-quoted Nix string literal."""

    # JSON escaping matches Nix for quotes, backslashes and newlines; \u escapes do
    # not exist in Nix, so non-ASCII text is kept literal.
    return json.dumps(value, ensure_ascii=False).replace("${", "\\${")


def discover_expression(label: str, skip_token: str, blocklist: Sequence[str] | None = None) -> str:
    """Fill the discovery template for one attribute label."""

    values = {
        "LABEL": nix_string(label),
        "SKIP_TOKEN": nix_string(skip_token),
        "BLOCKLIST": nix_string(json.dumps(list(blocklist or []))),
    }
    return _PLACEHOLDER.sub(lambda match: values[match.group(1)], _DISCOVER_TEMPLATE)
