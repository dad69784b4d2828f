"""Pytest configuration and fixtures for locgraph tests."""

import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Set, Tuple

import pytest

from locgraph_cli.backend import SemanticBackend, TextDocument
from locgraph_cli.models import OperatorSite, Position, Range


class FakeBackend(SemanticBackend):
    """Scriptable semantic backend.

    Responses are keyed by ``(line, character)``.  ``delays`` holds per-operation
    sleeps in seconds and ``fail_on`` names operations that raise.
    """

    def __init__(self) -> None:
        self.hovers: Dict[Tuple[int, int], Any] = {}
        self.type_definitions: Dict[Tuple[int, int], Any] = {}
        self.definitions: Dict[Tuple[int, int], Any] = {}
        self.inlay: Dict[int, Any] = {}
        self.texts: Dict[str, str] = {}
        self.delays: Dict[str, float] = {}
        self.fail_on: Set[str] = set()
        self.calls: List[str] = []

    async def _respond(self, operation: str, value: Any) -> Any:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} exploded")
        delay = self.delays.get(operation)
        if delay:
            await asyncio.sleep(delay)
        return value

    async def hover(self, uri: str, position: Position) -> Any:
        return await self._respond("hover", self.hovers.get((position.line, position.character)))

    async def type_definition(self, uri: str, position: Position) -> Any:
        return await self._respond(
            "typeDefinition", self.type_definitions.get((position.line, position.character))
        )

    async def definition(self, uri: str, position: Position) -> Any:
        return await self._respond("definition", self.definitions.get((position.line, position.character)))

    async def inlay_hints(self, uri: str, line_range: Range) -> Any:
        return await self._respond("inlayHints", self.inlay.get(line_range.start.line))

    async def read_text(self, uri: str, text_range: Range) -> Optional[str]:
        return await self._respond("readText", self.texts.get(uri))


def method_hover(signature: str, metadata: str = "") -> Dict[str, Any]:
    """Hover payload shaped like a rust-analyzer method hover."""
    value = (
        "```rust\nhydro_lang::live_collections::stream::Stream\n```\n\n"
        f"```rust\n{signature}\n```"
    )
    if metadata:
        value += f"\n\n---\n\n{metadata}"
    return {"contents": {"kind": "markdown", "value": value}}


def binding_hover(declaration: str) -> Dict[str, Any]:
    return {"contents": {"kind": "markdown", "value": f"```rust\n{declaration}\n```"}}


def site_at(document: TextDocument, line: int, name: str) -> OperatorSite:
    """Operator site at the first occurrence of *name* on *line*."""
    return OperatorSite(Position(line, document.line_at(line).index(name)), name)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_config_home(temp_dir: Path, monkeypatch) -> Path:
    """Point the config layer at a temporary directory."""
    base_dir = temp_dir / "locgraph"
    monkeypatch.setattr("locgraph_cli.config.BASE_DIR", base_dir)
    monkeypatch.setattr("locgraph_cli.config.CONFIG_FILE", base_dir / "config.toml")
    return base_dir


@pytest.fixture
def chain_document() -> TextDocument:
    """A dataflow function with one three-operator chain."""
    return TextDocument(
        "file:///src/pipeline.rs",
        "\n".join(
            [
                "pub fn pipeline<'a>(leader: &Process<'a, Leader>) {",
                "    leader",
                "        .source_iter(q!(0..10))",
                "        .map(q!(|x| x + 1))",
                "        .for_each(q!(|x| println!(\"{}\", x)));",
                "}",
                "",
                "pub struct Leader {}",
            ]
        ),
    )
