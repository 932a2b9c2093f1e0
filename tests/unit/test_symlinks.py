"""Tests for symbolic link analysis."""

import os

import pytest

from pkgextract.errors import SymlinkBoundaryError
from pkgextract.symlinks import SymlinkAnalyzer


class TestSymlinkAnalyzer:
    """Test path classification and link recording."""

    def test_classifies_files_and_folders(self, real_tmp_path):
        """Should classify plain files and folders without recording links."""
        (real_tmp_path / "folder").mkdir()
        (real_tmp_path / "folder" / "file.txt").write_text("x")
        analyzer = SymlinkAnalyzer()

        folder_node = analyzer.analyze_path(str(real_tmp_path / "folder"))
        file_node = analyzer.analyze_path(str(real_tmp_path / "folder" / "file.txt"))

        assert folder_node.kind == "folder"
        assert file_node.kind == "file"
        assert file_node.node_path == str(real_tmp_path / "folder" / "file.txt")
        assert analyzer.report_symlinks() == []

    def test_follows_folder_link(self, real_tmp_path, symlink_maker):
        """Should resolve through a folder link and record it."""
        (real_tmp_path / "real").mkdir()
        (real_tmp_path / "real" / "file.txt").write_text("x")
        symlink_maker(real_tmp_path / "alias", real_tmp_path / "real")
        analyzer = SymlinkAnalyzer(required_source_parent_path=str(real_tmp_path))

        node = analyzer.analyze_path(str(real_tmp_path / "alias" / "file.txt"))

        assert node.kind == "file"
        assert node.node_path == str(real_tmp_path / "real" / "file.txt")
        links = analyzer.report_symlinks()
        assert len(links) == 1
        assert links[0].kind == "folderLink"
        assert links[0].link_path == str(real_tmp_path / "alias")
        assert links[0].target_path == str(real_tmp_path / "real")

    def test_classification_is_idempotent(self, real_tmp_path, symlink_maker):
        """Analyzing the same path twice should return the same node and one link."""
        (real_tmp_path / "real").mkdir()
        symlink_maker(real_tmp_path / "alias", real_tmp_path / "real")
        analyzer = SymlinkAnalyzer()

        first = analyzer.analyze_path(str(real_tmp_path / "alias"))
        second = analyzer.analyze_path(str(real_tmp_path / "alias"))

        assert first is second
        assert len(analyzer.report_symlinks()) == 1

    def test_preserve_links_returns_link_node(self, real_tmp_path, symlink_maker):
        """Should return the link itself when asked to preserve links."""
        (real_tmp_path / "real").mkdir()
        symlink_maker(real_tmp_path / "alias", real_tmp_path / "real")
        analyzer = SymlinkAnalyzer()

        node = analyzer.analyze_path(str(real_tmp_path / "alias"), preserve_links=True)

        assert node.kind == "link"
        assert node.link_target == str(real_tmp_path / "real")
        assert analyzer.report_symlinks() == []

    def test_link_chain_records_every_link(self, real_tmp_path, symlink_maker):
        """Each link in a chain should be recorded, typed by the final target."""
        (real_tmp_path / "file.txt").write_text("x")
        symlink_maker(real_tmp_path / "second", real_tmp_path / "file.txt")
        symlink_maker(real_tmp_path / "first", real_tmp_path / "second")
        analyzer = SymlinkAnalyzer()

        node = analyzer.analyze_path(str(real_tmp_path / "first"))

        assert node.node_path == str(real_tmp_path / "file.txt")
        links = {link.link_path: link for link in analyzer.report_symlinks()}
        assert set(links) == {str(real_tmp_path / "first"), str(real_tmp_path / "second")}
        assert links[str(real_tmp_path / "first")].kind == "fileLink"
        assert links[str(real_tmp_path / "first")].target_path == str(real_tmp_path / "second")

    def test_external_link_raises(self, real_tmp_path, symlink_maker):
        """A link leaving the required folder should raise a boundary error."""
        source = real_tmp_path / "source"
        outside = real_tmp_path / "outside"
        source.mkdir()
        outside.mkdir()
        (outside / "secret.txt").write_text("x")
        symlink_maker(source / "external", outside)
        analyzer = SymlinkAnalyzer(required_source_parent_path=str(source))

        with pytest.raises(SymlinkBoundaryError) as exc_info:
            analyzer.analyze_path(str(source / "external" / "secret.txt"))

        assert str(exc_info.value).startswith("Symlink targets not under folder")
        assert analyzer.report_symlinks() == []

    def test_external_link_can_be_ignored(self, real_tmp_path, symlink_maker):
        """An ignored external link should yield None and record nothing."""
        source = real_tmp_path / "source"
        outside = real_tmp_path / "outside"
        source.mkdir()
        outside.mkdir()
        symlink_maker(source / "external", outside)
        analyzer = SymlinkAnalyzer(required_source_parent_path=str(source))
        seen = []

        def ignore(link_path):
            seen.append(link_path)
            return True

        node = analyzer.analyze_path(str(source / "external"), should_ignore_external_link=ignore)

        assert node is None
        assert seen == [str(source / "external")]
        assert analyzer.report_symlinks() == []

    def test_get_real_path_of_missing_path(self, real_tmp_path):
        """Missing paths should be returned unchanged."""
        analyzer = SymlinkAnalyzer()
        missing = str(real_tmp_path / "nope" / "package.json")

        assert analyzer.get_real_path(missing) == missing

    def test_report_symlinks_is_sorted(self, real_tmp_path, symlink_maker):
        """Links should be reported sorted by link path."""
        (real_tmp_path / "real").mkdir()
        symlink_maker(real_tmp_path / "b-link", real_tmp_path / "real")
        symlink_maker(real_tmp_path / "a-link", real_tmp_path / "real")
        analyzer = SymlinkAnalyzer()

        analyzer.analyze_path(str(real_tmp_path / "b-link"))
        analyzer.analyze_path(str(real_tmp_path / "a-link"))

        link_paths = [link.link_path for link in analyzer.report_symlinks()]
        assert link_paths == sorted(link_paths)
        assert os.path.basename(link_paths[0]) == "a-link"
