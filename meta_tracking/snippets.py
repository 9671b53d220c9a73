import json
from typing import Any

from django.core.serializers.json import DjangoJSONEncoder

# Escapes that keep a JSON literal from closing an inline <script>.
_JS_ESCAPES = {
    ord(">"): "\\u003E",
    ord("<"): "\\u003C",
    ord("&"): "\\u0026",
    ord("\u2028"): "\\u2028",
    ord("\u2029"): "\\u2029",
}


def js_literal(value: Any) -> str:
    """Encode ``value`` as a JavaScript literal that is safe inside an inline script."""
    return json.dumps(value, cls=DjangoJSONEncoder, separators=(",", ":")).translate(_JS_ESCAPES)


def drop_none(mapping: dict) -> dict:
    return {key: value for key, value in mapping.items() if value is not None}
