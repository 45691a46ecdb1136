"""Rendering of decoded notes into the files published on the remote.

This module provides:
- remote_markdown_path / remote_raw_path: repository paths derived from a
  local source path
- render_snippet: Markdown rendition of a snippet note
- render_note: (title, body) for any recognized note, with a placeholder
  for empty notes
"""

from __future__ import annotations

import ntpath
import posixpath

from notemirror.client.api import trim_slashes
from notemirror.client.sync.types import MarkdownNote, NotePayload, SnippetNote

EMPTY_NOTE_TITLE = "Empty Note"
EMPTY_NOTE_CONTENT = "_No Content_"
UNTITLED_SNIPPET = "Untitled Snippet"

# Snippet editor mode name -> fenced code block language tag
LANGUAGE_MAP = {
    "Brainfuck": "brainfuck",
    "C++": "cpp",
    "C#": "cs",
    "Clojure": "clojure",
    "ClojureScript": "clojure-repl",
    "CMake": "cmake",
    "CoffeeScript": "coffeescript",
    "Crystal": "crystal",
    "CSS": "css",
    "D": "d",
    "Dart": "dart",
    "Pascal": "delphi",
    "Diff": "diff",
    "Django": "django",
    "Dockerfile": "dockerfile",
    "EBNF": "ebnf",
    "Elm": "elm",
    "Erlang": "erlang-repl",
    "Fortran": "fortran",
    "F#": "fsharp",
    "Gherkin": "gherkin",
    "Go": "go",
    "Groovy": "groovy",
    "HAML": "haml",
    "Haskell": "haskell",
    "Haxe": "haxe",
    "HTTP": "http",
    "toml": "ini",
    "Java": "java",
    "JavaScript": "javascript",
    "JSON": "json",
    "Julia": "julia",
    "Kotlin": "kotlin",
    "LESS": "less",
    "LiveScript": "livescript",
    "Lua": "lua",
    "Markdown": "markdown",
    "Mathematica": "mathematica",
    "Nginx": "nginx",
    "NSIS": "nsis",
    "Objective-C": "objectivec",
    "Ocaml": "ocaml",
    "Perl": "perl",
    "PHP": "php",
    "PowerShell": "powershell",
    "Properties files": "properties",
    "ProtoBuf": "protobuf",
    "Python": "python",
    "Puppet": "puppet",
    "Q": "q",
    "R": "r",
    "Ruby": "ruby",
    "Rust": "rust",
    "SAS": "sas",
    "Scala": "scala",
    "Scheme": "scheme",
    "SCSS": "scss",
    "Shell": "shell",
    "Smalltalk": "smalltalk",
    "SML": "sml",
    "SQL": "sql",
    "Stylus": "stylus",
    "Swift": "swift",
    "Tcl": "tcl",
    "LaTex": "tex",
    "TypeScript": "typescript",
    "Twig": "twig",
    "VB.NET": "vbnet",
    "VBScript": "vbscript",
    "Verilog": "verilog",
    "VHDL": "vhdl",
    "HTML": "xml",
    "XQuery": "xquery",
    "YAML": "yaml",
    "Elixir": "elixir",
}


def _basename(source_path: str) -> str:
    # ntpath splits on both separators, so Windows paths work too
    return ntpath.basename(source_path)


def remote_markdown_path(source_path: str, base_dir: str = "/") -> str:
    """Repository path of the rendered note: <base_dir>/<stem>.md."""
    stem, _ = posixpath.splitext(_basename(source_path))
    return trim_slashes(posixpath.join("/", base_dir, f"{stem}.md"))


def remote_raw_path(source_path: str, raw_dir: str = "raw") -> str:
    """Repository path of the unmodified source file."""
    return trim_slashes(posixpath.join("/", raw_dir, _basename(source_path)))


def render_snippet(note: SnippetNote) -> str:
    """Render a snippet note as Markdown with fenced code blocks."""
    lines = [f"# {note.title or UNTITLED_SNIPPET}\n"]
    if note.description and note.description != note.title:
        lines.append(f"{note.description}\n")
    for snippet in note.snippets:
        lang = LANGUAGE_MAP.get(snippet.mode, "")
        lines.append(f"### {snippet.name}\n")
        lines.append(f"```{lang}\n{snippet.content}\n```\n")
    return "".join(lines)


def is_note_empty(payload: NotePayload | None) -> bool:
    """Whether a note has no body text worth publishing."""
    if payload is None:
        return True
    if isinstance(payload, MarkdownNote):
        return not payload.content.strip()
    return not payload.description.strip() and not any(
        s.content.strip() for s in payload.snippets
    )


def render_note(payload: NotePayload | None) -> tuple[str, str]:
    """Compute the published (title, body) of a note.

    Empty notes are replaced with a placeholder so that every tracked local
    note has a file on the remote.
    """
    if payload is None or is_note_empty(payload):
        return EMPTY_NOTE_TITLE, EMPTY_NOTE_CONTENT
    if isinstance(payload, SnippetNote):
        return payload.title or UNTITLED_SNIPPET, render_snippet(payload)
    return payload.title, payload.content
