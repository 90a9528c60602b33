"""Unit tests for sync_engine.attachments module."""

import os

from src.sync_engine.attachments import (
    AttachmentRef,
    AttachmentReconciler,
    build_attachment_path,
    collect_attachment_refs,
    page_attachment_paths,
    remove_empty_parent_dirs,
)
from tests.helpers.fake_remote import doc, media, paragraph


class TestAttachmentPaths:
    """Test cases for attachment path helpers."""

    def test_build_attachment_path(self):
        """Paths are assets/<pageId>/<attachmentId>-<filename>."""
        ref = AttachmentRef("123", "att9", "My Diagram.png")

        assert build_attachment_path(ref) == "assets/123/att9-My-Diagram.png"

    def test_same_filename_on_two_pages_does_not_collide(self):
        """Content addressing keeps identical filenames apart."""
        first = AttachmentRef("1", "att1", "image.png").path
        second = AttachmentRef("2", "att2", "image.png").path

        assert first != second

    def test_page_attachment_paths_filters_by_page(self):
        index = {
            "assets/1/a-x.png": "a",
            "assets/12/b-y.png": "b",
            "assets/1/c-z.png": "c",
        }

        assert page_attachment_paths(index, "1") == ["assets/1/a-x.png", "assets/1/c-z.png"]


class TestCollectAttachmentRefs:
    """Test cases for collect_attachment_refs function."""

    def test_collects_media_nodes(self):
        adf = doc(paragraph("Intro"), media("att1", "diagram.png", page_id="5"))

        refs = collect_attachment_refs(adf, "5")

        assert refs == {"att1": AttachmentRef("5", "att1", "diagram.png")}

    def test_defaults_page_id_and_filename(self):
        adf = doc({"type": "mediaSingle", "content": [{"type": "media", "attrs": {"id": "att2"}}]})

        refs = collect_attachment_refs(adf, "9")

        assert refs["att2"] == AttachmentRef("9", "att2", "attachment")

    def test_ignores_media_without_id(self):
        adf = doc({"type": "mediaSingle", "content": [{"type": "media", "attrs": {"type": "external"}}]})

        assert collect_attachment_refs(adf, "9") == {}

    def test_empty_body(self):
        assert collect_attachment_refs(None, "9") == {}


class TestAttachmentReconciler:
    """Test cases for AttachmentReconciler."""

    def test_new_reference_is_scheduled_for_download(self, tmp_path):
        reconciler = AttachmentReconciler(str(tmp_path), {})

        reconciler.reconcile_page("5", doc(media("att1", "a.png")))

        assert [d.path for d in reconciler.downloads] == ["assets/5/att1-a.png"]
        assert reconciler.index == {"assets/5/att1-a.png": "att1"}
        assert reconciler.path_by_id == {"att1": "assets/5/att1-a.png"}

    def test_present_file_is_not_downloaded_again(self, tmp_path):
        """An indexed attachment whose file exists is left alone."""
        path = tmp_path / "assets" / "5" / "att1-a.png"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"png")
        reconciler = AttachmentReconciler(str(tmp_path), {"assets/5/att1-a.png": "att1"})

        reconciler.reconcile_page("5", doc(media("att1", "a.png")))

        assert reconciler.downloads == []

    def test_missing_file_is_downloaded_again(self, tmp_path):
        reconciler = AttachmentReconciler(str(tmp_path), {"assets/5/att1-a.png": "att1"})

        reconciler.reconcile_page("5", doc(media("att1", "a.png")))

        assert len(reconciler.downloads) == 1

    def test_unreferenced_attachment_becomes_stale(self, tmp_path):
        """An attachment dropped from the body is deleted with its empty directories."""
        path = tmp_path / "assets" / "5" / "att1-a.png"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"png")
        reconciler = AttachmentReconciler(str(tmp_path), {"assets/5/att1-a.png": "att1"})

        reconciler.reconcile_page("5", doc(paragraph("no images")))
        deleted = reconciler.delete_stale()

        assert deleted == ["assets/5/att1-a.png"]
        assert reconciler.index == {}
        assert not path.exists()
        assert not (tmp_path / "assets").exists()

    def test_forget_page_drops_all_its_attachments(self, tmp_path):
        index = {"assets/5/att1-a.png": "att1", "assets/6/att2-b.png": "att2"}
        reconciler = AttachmentReconciler(str(tmp_path), index)

        removed = reconciler.forget_page("5")

        assert removed == ["assets/5/att1-a.png"]
        assert reconciler.index == {"assets/6/att2-b.png": "att2"}
        assert reconciler.delete_stale() == ["assets/5/att1-a.png"]

    def test_renamed_attachment_moves_path(self, tmp_path):
        """A new filename for the same ID replaces the old path."""
        reconciler = AttachmentReconciler(str(tmp_path), {"assets/5/att1-old.png": "att1"})

        reconciler.reconcile_page("5", doc(media("att1", "new.png")))

        assert reconciler.index == {"assets/5/att1-new.png": "att1"}
        assert reconciler.delete_stale() == ["assets/5/att1-old.png"]

    def test_write_creates_directories(self, tmp_path):
        reconciler = AttachmentReconciler(str(tmp_path), {})
        reconciler.reconcile_page("5", doc(media("att1", "a.png")))

        reconciler.write(reconciler.downloads[0], b"data")

        assert (tmp_path / "assets" / "5" / "att1-a.png").read_bytes() == b"data"


class TestRemoveEmptyParentDirs:
    """Test cases for remove_empty_parent_dirs function."""

    def test_stops_at_non_empty_directory(self, tmp_path):
        (tmp_path / "a" / "b" / "c").mkdir(parents=True)
        (tmp_path / "a" / "keep.txt").write_text("x")

        remove_empty_parent_dirs(str(tmp_path / "a" / "b" / "c"), str(tmp_path))

        assert not (tmp_path / "a" / "b").exists()
        assert (tmp_path / "a").exists()

    def test_keeps_stop_dir_when_asked(self, tmp_path):
        stop = tmp_path / "space"
        (stop / "dir").mkdir(parents=True)

        remove_empty_parent_dirs(str(stop / "dir"), str(stop), remove_stop=False)

        assert stop.exists()
        assert not (stop / "dir").exists()

    def test_ignores_directories_outside_stop(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()

        remove_empty_parent_dirs(str(outside), str(tmp_path / "space"))

        assert os.path.isdir(outside)
