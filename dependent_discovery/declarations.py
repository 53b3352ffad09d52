"""Text parser for module declaration files (go.mod).

Both the local prober's fallback path and the GitHub prober read declaration
files through this module, so single-line and block ``require`` handling lives
in one place.

Grammar handled:
  module <identifier>
  require <identifier> <version>
  require (
      <identifier> <version>
  )
  replace <identifier> [<version>] => <replacement> [<version>]
  replace ( ... )
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DECLARATION_FILE = "go.mod"


@dataclass
class Requirement:
    module: str
    version: str = ""


@dataclass
class Replacement:
    old: str
    old_version: str
    new: str
    new_version: str


@dataclass
class Declaration:
    module: Optional[str] = None
    requires: list[Requirement] = field(default_factory=list)
    replaces: list[Replacement] = field(default_factory=list)

    def requirement(self, target: str) -> Optional[Requirement]:
        for req in self.requires:
            if req.module == target:
                return req
        return None

    def depends_on(self, target: str) -> bool:
        return self.requirement(target) is not None

    def dependency_version(self, target: str) -> str:
        """Pinned version of *target*; a versioned replacement wins over the require line."""
        for rep in self.replaces:
            if rep.old == target and rep.new_version:
                return rep.new_version
        req = self.requirement(target)
        return req.version if req else ""


def _strip_comment(line: str) -> str:
    idx = line.find("//")
    return line[:idx] if idx >= 0 else line


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"`":
        return token[1:-1]
    return token


def _parse_require(fields: list[str]) -> Optional[Requirement]:
    if not fields:
        return None
    version = _unquote(fields[1]) if len(fields) > 1 else ""
    return Requirement(module=_unquote(fields[0]), version=version)


def _parse_replace(fields: list[str]) -> Optional[Replacement]:
    if "=>" not in fields:
        return None
    arrow = fields.index("=>")
    left, right = fields[:arrow], fields[arrow + 1:]
    if not left or not right:
        return None
    return Replacement(
        old=_unquote(left[0]),
        old_version=_unquote(left[1]) if len(left) > 1 else "",
        new=_unquote(right[0]),
        new_version=_unquote(right[1]) if len(right) > 1 else "",
    )


def parse_declaration(text: str) -> Declaration:
    """Parse declaration-file text. Unknown directives are ignored."""
    decl = Declaration()
    block: Optional[str] = None

    for raw in text.splitlines():
        line = _strip_comment(raw).strip()
        if not line:
            continue

        if block is not None:
            if ")" in line:
                block = None
                continue
            fields = line.split()
            if block == "require":
                req = _parse_require(fields)
                if req:
                    decl.requires.append(req)
            elif block == "replace":
                rep = _parse_replace(fields)
                if rep:
                    decl.replaces.append(rep)
            continue

        fields = line.split()
        directive, args = fields[0], fields[1:]

        if directive in ("require", "replace", "exclude", "retract") and args == ["("]:
            block = directive
            continue

        if directive == "module" and args:
            decl.module = _unquote(args[0])
        elif directive == "require":
            req = _parse_require(args)
            if req:
                decl.requires.append(req)
        elif directive == "replace":
            rep = _parse_replace(args)
            if rep:
                decl.replaces.append(rep)

    return decl


def read_declaration(module_dir: str | Path) -> Declaration:
    """Parse ``go.mod`` in *module_dir*. Raises OSError when it cannot be read."""
    path = Path(module_dir) / DECLARATION_FILE
    return parse_declaration(path.read_text(encoding="utf-8"))


def module_path_from_file(path: str | Path) -> str:
    """Module identifier declared by the file at *path*.

    Raises ValueError when the file has no ``module`` line.
    """
    decl = parse_declaration(Path(path).read_text(encoding="utf-8"))
    if not decl.module:
        raise ValueError(f"no module declaration found in {path}")
    return decl.module
