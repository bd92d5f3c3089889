import io
import os
import shutil
import tarfile
import tempfile
import unittest
from unittest.mock import patch, MagicMock

from blasbuilder.errors import ConfigurationError, FetchError
from blasbuilder.utils.file_manager import (
    _safe_join,
    download_and_extract,
    extract,
    prepare_source_tree,
    staging_path,
)


def _read_tree(root):
    contents = {}
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            path = os.path.join(dirpath, name)
            with open(path) as f:
                contents[os.path.relpath(path, root)] = f.read()
    return contents


@patch('blasbuilder.utils.file_manager.logger')
class TestPrepareSourceTree(unittest.TestCase):

    def setUp(self):
        self.workdir = tempfile.mkdtemp()
        self.source = os.path.join(self.workdir, "source")
        os.makedirs(os.path.join(self.source, "kernel"))
        with open(os.path.join(self.source, "Makefile"), "w") as f:
            f.write("all:\n")
        with open(os.path.join(self.source, "kernel", "gemm.c"), "w") as f:
            f.write("/* gemm */\n")
        self.destination = os.path.join(self.workdir, "out", "source_x86_64-unknown-linux-gnu")

    def tearDown(self):
        shutil.rmtree(self.workdir)

    def test_copies_when_absent(self, mock_logger):
        self.assertTrue(prepare_source_tree(self.source, self.destination))
        self.assertEqual(_read_tree(self.destination), _read_tree(self.source))
        self.assertFalse(os.path.exists(staging_path(self.destination)))

    def test_existing_tree_is_left_untouched(self, mock_logger):
        prepare_source_tree(self.source, self.destination)
        with open(os.path.join(self.destination, "build.log"), "w") as f:
            f.write("previous build\n")
        before = _read_tree(self.destination)

        with patch('blasbuilder.utils.file_manager.shutil.copytree') as mock_copytree:
            self.assertFalse(prepare_source_tree(self.source, self.destination))
            mock_copytree.assert_not_called()
        self.assertEqual(_read_tree(self.destination), before)

    def test_stale_staging_copy_is_discarded(self, mock_logger):
        staging = staging_path(self.destination)
        os.makedirs(staging)
        with open(os.path.join(staging, "half-copied.c"), "w") as f:
            f.write("/* trunc")

        prepare_source_tree(self.source, self.destination)

        self.assertEqual(_read_tree(self.destination), _read_tree(self.source))
        self.assertFalse(os.path.exists(staging))

    def test_interrupted_copy_never_exposes_final_tree(self, mock_logger):
        def interrupted_copy(src, dst, symlinks=False):
            os.makedirs(dst)
            with open(os.path.join(dst, "Makefile"), "w") as f:
                f.write("al")
            raise KeyboardInterrupt

        with patch('blasbuilder.utils.file_manager.shutil.copytree', side_effect=interrupted_copy):
            with self.assertRaises(KeyboardInterrupt):
                prepare_source_tree(self.source, self.destination)
        self.assertFalse(os.path.exists(self.destination))
        self.assertTrue(os.path.exists(staging_path(self.destination)))

        # the next run recovers
        self.assertTrue(prepare_source_tree(self.source, self.destination))
        self.assertEqual(_read_tree(self.destination), _read_tree(self.source))

    def test_missing_vendored_source(self, mock_logger):
        with self.assertRaises(ConfigurationError) as ctx:
            prepare_source_tree(os.path.join(self.workdir, "nope"), self.destination)
        self.assertIn("blasbuilder fetch", ctx.exception.format_message())


class TestArchives(unittest.TestCase):

    def test_safe_join(self):
        base = '/tmp'
        self.assertEqual(_safe_join(base, 'foo', 'bar'), '/tmp/foo/bar')
        with self.assertRaises(IOError):
            _safe_join(base, '../foo')

    @patch('blasbuilder.utils.file_manager.logger')
    def test_extract_tar(self, mock_logger):
        workdir = tempfile.mkdtemp()
        try:
            archive = os.path.join(workdir, "OpenBLAS-0.3.28.tar.gz")
            with tarfile.open(archive, "w:gz") as tar:
                data = b"all:\n"
                info = tarfile.TarInfo("OpenBLAS-0.3.28/Makefile")
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))

            dest = os.path.join(workdir, "unpacked")
            self.assertEqual(extract(archive, dest), dest)
            self.assertTrue(os.path.isfile(os.path.join(dest, "OpenBLAS-0.3.28", "Makefile")))
            self.assertFalse(os.path.exists(archive))
        finally:
            shutil.rmtree(workdir)

    @patch('blasbuilder.utils.file_manager.logger')
    def test_extract_tar_links_become_copies(self, mock_logger):
        workdir = tempfile.mkdtemp()
        try:
            archive = os.path.join(workdir, "OpenBLAS-0.3.28.tar.gz")
            with tarfile.open(archive, "w:gz") as tar:
                data = b"int gemm;\n"
                info = tarfile.TarInfo("OpenBLAS-0.3.28/kernel/gemm.c")
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))

                hard = tarfile.TarInfo("OpenBLAS-0.3.28/kernel/gemm_copy.c")
                hard.type = tarfile.LNKTYPE
                hard.linkname = "OpenBLAS-0.3.28/kernel/gemm.c"
                hard.mode = 0o644
                tar.addfile(hard)

                soft = tarfile.TarInfo("OpenBLAS-0.3.28/kernel/gemm_link.c")
                soft.type = tarfile.SYMTYPE
                soft.linkname = "gemm.c"
                soft.mode = 0o644
                tar.addfile(soft)

            dest = os.path.join(workdir, "unpacked")
            extract(archive, dest)
            kernel = os.path.join(dest, "OpenBLAS-0.3.28", "kernel")
            for name in ("gemm.c", "gemm_copy.c", "gemm_link.c"):
                with self.subTest(name=name):
                    path = os.path.join(kernel, name)
                    self.assertFalse(os.path.islink(path))
                    with open(path, "rb") as f:
                        self.assertEqual(f.read(), b"int gemm;\n")
        finally:
            shutil.rmtree(workdir)

    @patch('blasbuilder.utils.file_manager.logger')
    def test_extract_tar_rejects_dangling_link(self, mock_logger):
        workdir = tempfile.mkdtemp()
        try:
            archive = os.path.join(workdir, "OpenBLAS-0.3.28.tar.gz")
            with tarfile.open(archive, "w:gz") as tar:
                soft = tarfile.TarInfo("OpenBLAS-0.3.28/passwd")
                soft.type = tarfile.SYMTYPE
                soft.linkname = "../../etc/passwd"
                tar.addfile(soft)

            with self.assertRaises(FetchError) as ctx:
                extract(archive, os.path.join(workdir, "unpacked"))
            self.assertIn("not in the archive", ctx.exception.format_message())
        finally:
            shutil.rmtree(workdir)

    @patch('blasbuilder.utils.file_manager.logger')
    @patch('tarfile.is_tarfile', return_value=False)
    @patch('os.makedirs')
    def test_extract_rejects_other_archives(self, mock_makedirs, mock_is_tarfile, mock_logger):
        with self.assertRaises(FetchError):
            extract('/tmp/test.zip', '/tmp/extracted')

    @patch('blasbuilder.utils.file_manager.logger')
    @patch('requests.get')
    @patch('blasbuilder.utils.file_manager.extract')
    @patch('os.replace')
    @patch('os.makedirs')
    def test_download_and_extract(self, mock_makedirs, mock_replace, mock_extract, mock_requests_get, mock_logger):
        mock_response = MagicMock()
        mock_response.iter_content.return_value = [b'test']
        mock_response.headers.get.return_value = '4'
        mock_requests_get.return_value.__enter__.return_value = mock_response
        mock_logger.progress.side_effect = lambda chunks, **kwargs: chunks

        with patch('builtins.open', unittest.mock.mock_open()) as mock_open:
            download_and_extract('http://test.com/OpenBLAS.tar.gz', '/tmp')
            mock_open.assert_called_with('/tmp/OpenBLAS.tar.gz.tmp', 'wb')
            mock_open().write.assert_called_once_with(b'test')
            mock_replace.assert_called_with('/tmp/OpenBLAS.tar.gz.tmp', '/tmp/OpenBLAS.tar.gz')
            mock_extract.assert_called_with('/tmp/OpenBLAS.tar.gz', '/tmp', verbose=False)

    @patch('blasbuilder.utils.file_manager.logger')
    @patch('requests.get')
    @patch('os.makedirs')
    def test_download_failure_raises(self, mock_makedirs, mock_requests_get, mock_logger):
        import requests
        mock_requests_get.side_effect = requests.exceptions.ConnectionError("offline")
        with self.assertRaises(FetchError):
            download_and_extract('http://test.com/OpenBLAS.tar.gz', '/tmp/does-not-matter')

if __name__ == '__main__':
    unittest.main()
