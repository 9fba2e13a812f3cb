from __future__ import annotations

from pathlib import Path

import pytest

SAMPLE_SPEC = """\
<bundlespec>
  <manifest>
    <name>Sample Bundle</name>
    <symbolicName>com.example.sample</symbolicName>
    <version>1.2.3</version>
    <vendor>Example Inc.</vendor>
    <copyright>(c) 2026, Example Inc.</copyright>
    <activator>
      <class>SampleActivator</class>
      <library>Sample</library>
    </activator>
    <lazyStart>false</lazyStart>
    <runLevel>400</runLevel>
    <dependency>
      <symbolicName>com.example.core</symbolicName>
      <version>[1.0, 2.0)</version>
    </dependency>
    <dependency>
      <symbolicName>com.example.util</symbolicName>
    </dependency>
  </manifest>
  <code>lib/*.so</code>
  <code platform="Windows_NT/x64">win/*.dll</code>
  <files>docs/*.txt</files>
</bundlespec>
"""


def write_file(path: Path, content: str = "data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def sample_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A bundle specification next to the files it references, run from that directory."""

    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    write_file(project / "lib" / "libsample.so", "elf")
    write_file(project / "lib" / ".libsample.so.debug", "debug")
    write_file(project / "win" / "Sample.dll", "pe")
    write_file(project / "docs" / "a.txt", "alpha")
    write_file(project / "docs" / "b.txt", "beta")
    write_file(project / "docs" / ".c.txt", "hidden")
    return write_file(project / "sample.bndlspec", SAMPLE_SPEC)
