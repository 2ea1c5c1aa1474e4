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

from dataclasses import dataclass, field
from enum import StrEnum
from typing import List, Optional

ALL_PROJECTS = "all"

DEFAULT_STEP_TITLES = ("Triage", "Reproduce", "Fix & verify")


class TicketStatus(StrEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"


class TicketPriority(StrEnum):
    LOW = "low"
    MED = "med"
    HIGH = "high"


class StepStatus(StrEnum):
    TODO = "todo"
    DOING = "doing"
    DONE = "done"


@dataclass
class Step:
    id: str
    title: str = ""
    notes: str = ""
    status: StepStatus = StepStatus.TODO


@dataclass
class Note:
    id: Optional[str] = None
    body: str = ""
    author: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Ticket:
    id: str
    project: str
    title: str
    description: str = ""
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MED
    assignee: str = ""
    steps: List[Step] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class TicketPage:
    items: List[Ticket]
    total: int
    page: int
    page_size: int


def normalize_project(project: Optional[str]) -> str:
    """Returns the grouping key for a project label: trimmed and case-folded."""
    return (project or "").strip().casefold()
