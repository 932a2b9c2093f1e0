"""Pytest configuration and fixtures."""

import json
import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

from pkgextract.models import ExtractorOptions, ProjectConfiguration


def write_package(folder, manifest, files=None):
    """Create a package folder with a package.json and some files."""
    os.makedirs(folder, exist_ok=True)
    with open(os.path.join(folder, "package.json"), "w", encoding="utf-8") as f:
        json.dump(manifest, f)
    for relative_path, content in (files or {}).items():
        file_path = os.path.join(folder, relative_path)
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(content)
    return str(folder)


def make_link(link_path, target_path):
    """Create a relative symlink, like a package manager does."""
    link_path = str(link_path)
    os.makedirs(os.path.dirname(link_path), exist_ok=True)
    relative_target = os.path.relpath(str(target_path), os.path.dirname(link_path))
    os.symlink(relative_target, link_path, target_is_directory=os.path.isdir(str(target_path)))


def pytest_collection_modifyitems(config, items):
    if sys.platform == "win32":
        skip = pytest.mark.skip(reason="fixtures create POSIX symlinks")
        for item in items:
            if {"monorepo", "symlink_maker"} & set(getattr(item, "fixturenames", ())):
                item.add_marker(skip)


@pytest.fixture
def monorepo(tmp_path):
    """A small pnpm-style workspace.

    apps/p1 depends on libs/p2 and lib-a; libs/p2 also depends on lib-a
    (a diamond). lib-a lives in the virtual store under common/ and is
    hoisted into common/node_modules/.pnpm/node_modules.
    """
    base = Path(os.path.realpath(tmp_path))
    root = base / "repo"
    store = root / "common" / "node_modules" / ".pnpm"
    lib_a = store / "lib-a@1.2.0" / "node_modules" / "lib-a"

    p1 = write_package(
        root / "apps" / "p1",
        {
            "name": "p1",
            "version": "1.0.0",
            "dependencies": {"p2": "workspace:*", "lib-a": "^1.0.0"},
            "peerDependencies": {"missing-peer": "*"},
        },
        {
            "index.js": "require('p2');\n",
            "src/util.js": "module.exports = {};\n",
            "README.md": "# p1\n",
        },
    )
    p2 = write_package(
        root / "libs" / "p2",
        {
            "name": "p2",
            "version": "1.0.0",
            "main": "lib/index.js",
            "dependencies": {"lib-a": "^1.0.0"},
        },
        {"lib/index.js": "module.exports = require('lib-a');\n"},
    )
    write_package(
        lib_a,
        {"name": "lib-a", "version": "1.2.0", "bin": {"lib-a": "bin/cli.js"}},
        {
            "index.js": "module.exports = 42;\n",
            "bin/cli.js": "#!/usr/bin/env node\n",
            "docs/guide.md": "guide\n",
        },
    )

    make_link(root / "apps" / "p1" / "node_modules" / "p2", p2)
    make_link(root / "apps" / "p1" / "node_modules" / "lib-a", lib_a)
    make_link(root / "libs" / "p2" / "node_modules" / "lib-a", lib_a)
    make_link(store / "node_modules" / "lib-a", lib_a)

    return SimpleNamespace(
        root=str(root),
        p1=p1,
        p2=p2,
        lib_a=str(lib_a),
        store=str(store),
        install_folder=str(root / "common"),
        target=str(base / "target"),
    )


@pytest.fixture
def make_options(monorepo):
    """Build extractor options for the sample workspace."""

    def _make_options(p1_exclude=None, **kwargs):
        projects = [
            ProjectConfiguration(
                project_name="p1",
                project_folder=monorepo.p1,
                patterns_to_exclude=p1_exclude,
            ),
            ProjectConfiguration(project_name="p2", project_folder=monorepo.p2),
        ]
        kwargs.setdefault("pnpm_install_folder", monorepo.install_folder)
        return ExtractorOptions(
            main_project_name=kwargs.pop("main_project_name", "p1"),
            source_root_folder=monorepo.root,
            target_root_folder=kwargs.pop("target_root_folder", monorepo.target),
            project_configurations=projects,
            **kwargs,
        )

    return _make_options


@pytest.fixture
def package_writer():
    return write_package


@pytest.fixture
def symlink_maker():
    return make_link


@pytest.fixture
def real_tmp_path(tmp_path):
    """tmp_path with any symlinks in its prefix resolved."""
    return Path(os.path.realpath(tmp_path))
