"""Tests for the publish file list."""

from pkgextract.packlist import get_package_included_files


class TestPackList:
    """Test which files a package would publish."""

    def test_default_rules(self, real_tmp_path, package_writer):
        """Should skip node_modules, VCS folders and lock files."""
        root = package_writer(
            real_tmp_path / "pkg",
            {"name": "pkg", "version": "1.0.0"},
            {
                "index.js": "",
                "lib/a.js": "",
                "node_modules/dep/index.js": "",
                ".git/HEAD": "",
                "package-lock.json": "{}",
                "npm-debug.log": "",
                "lib/file.orig": "",
            },
        )

        assert get_package_included_files(root) == ["index.js", "lib/a.js", "package.json"]

    def test_npmignore_is_applied_per_folder(self, real_tmp_path, package_writer):
        """Ignore files should apply relative to their own folder."""
        root = package_writer(
            real_tmp_path / "pkg",
            {"name": "pkg"},
            {
                ".npmignore": "*.test.js\n",
                "index.js": "",
                "index.test.js": "",
                "lib/.npmignore": "fixtures/\n",
                "lib/a.js": "",
                "lib/fixtures/data.json": "",
                "fixtures/keep.json": "",
            },
        )

        files = get_package_included_files(root)

        assert files == ["fixtures/keep.json", "index.js", "lib/a.js", "package.json"]

    def test_gitignore_used_without_npmignore(self, real_tmp_path, package_writer):
        root = package_writer(
            real_tmp_path / "pkg",
            {"name": "pkg"},
            {".gitignore": "dist/\n", "index.js": "", "dist/out.js": ""},
        )

        assert get_package_included_files(root) == ["index.js", "package.json"]

    def test_files_field_is_a_whitelist(self, real_tmp_path, package_writer):
        """With a files list, only listed paths plus always-included files are published."""
        root = package_writer(
            real_tmp_path / "pkg",
            {"name": "pkg", "files": ["lib"], "main": "main.js", "bin": {"pkg": "cli.js"}},
            {
                ".npmignore": "lib/\n",
                "lib/a.js": "",
                "lib/sub/b.js": "",
                "src/a.ts": "",
                "main.js": "",
                "cli.js": "",
                "README.md": "",
                "LICENSE": "",
                "CHANGELOG.md": "",
            },
        )

        files = get_package_included_files(root)

        assert files == [
            "LICENSE",
            "README.md",
            "cli.js",
            "lib/a.js",
            "lib/sub/b.js",
            "main.js",
            "package.json",
        ]
