# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import re
from typing import Any, Literal

STORAGE_ID_KEY = "_id"
CANONICAL_ID_KEY = "id"

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _camel_to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _snake_to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def convert_keys(
    data: Any, direction: Literal["camel_to_snake", "snake_to_camel"]
) -> Any:
    """
    Recursively converts dictionary keys between camelCase and snake_case.

    Keys starting with an underscore (such as the storage "_id") are left
    untouched so the conversion never collides with identifier handling.

    Args:
        data: A dict, list, or scalar value.
        direction: Either "camel_to_snake" or "snake_to_camel".

    Returns:
        A new structure with converted keys. Scalars are returned as-is.
    """
    if direction == "camel_to_snake":
        convert = _camel_to_snake
    elif direction == "snake_to_camel":
        convert = _snake_to_camel
    else:
        raise ValueError(f"Unknown key conversion direction: {direction}")

    def _walk(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                (key if key.startswith("_") else convert(key)): _walk(item)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [_walk(item) for item in value]
        return value

    return _walk(data)


def normalize_id(value: Any) -> Any:
    """
    Renames the storage identifier "_id" to "id" throughout a document tree.

    Works on any nesting of dicts and lists, so a ticket and every step and
    note embedded in it are handled by the same pass. A mapping whose "_id"
    is missing or None is passed through with its fields unchanged. The
    returned structure is always a fresh copy of the containers.

    Args:
        value: A document, a list of documents, or a scalar.

    Returns:
        The normalized structure. Applying it twice gives the same result as
        applying it once.
    """
    if isinstance(value, dict):
        raw_id = value.get(STORAGE_ID_KEY)
        rest = {
            key: normalize_id(item)
            for key, item in value.items()
            if key != STORAGE_ID_KEY
        }
        if raw_id is None:
            if STORAGE_ID_KEY in value:
                rest = {STORAGE_ID_KEY: None, **rest}
            return rest
        rest.pop(CANONICAL_ID_KEY, None)
        canonical = raw_id if isinstance(raw_id, str) else str(raw_id)
        return {CANONICAL_ID_KEY: canonical, **rest}
    if isinstance(value, (list, tuple)):
        return [normalize_id(item) for item in value]
    return value
