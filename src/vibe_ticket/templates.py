"""Markdown templates for specification documents."""

from __future__ import annotations

REQUIREMENTS_TEMPLATE = """\
# Requirements: {title}

{description}

## Problem Statement

Describe the problem this specification solves.

## User Stories

- As a <role>, I want <capability>, so that <benefit>.

## Acceptance Criteria

- [ ] WHEN <condition> THEN the system SHALL <behavior>

## Out of Scope

-
"""

DESIGN_TEMPLATE = """\
# Design: {title}

## Overview

Summarize the chosen approach.

## Architecture

Describe components and how they interact.

## Data Model

## Error Handling

## Testing Strategy

## Alternatives Considered
"""

TASKS_TEMPLATE = """\
# Tasks: {title}

Unchecked items can be turned into tickets with
`vibe-ticket spec tasks --export-tickets`.

## Setup
- [ ] T001: Initialize project structure
- [ ] T002: Set up development environment

## Core
- [ ] T003: Implement data models
- [ ] T004: Implement core functionality
- [ ] T005: Implement error handling

## Verification
- [ ] T006: Write unit tests
- [ ] T007: Write integration tests

## Delivery
- [ ] T008: Write documentation
"""

TEMPLATES = {
    "requirements": REQUIREMENTS_TEMPLATE,
    "design": DESIGN_TEMPLATE,
    "tasks": TASKS_TEMPLATE,
}


def render(phase: str, title: str, description: str = "") -> str:
    """Render the starting document for a specification phase."""
    return TEMPLATES[phase].format(title=title, description=description or "")
