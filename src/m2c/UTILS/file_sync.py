"""
Additive directory synchronisation.
"""
import filecmp
import os
import shutil


def sync_tree(source: str, destination: str) -> int:
    """
    Copies every file of `source` into `destination`, creating directories as
    needed. Files already present with identical content are left untouched
    and files that exist only in `destination` are never removed.

    :param source: Directory to copy from.
    :param destination: Directory to copy into.
    :return: Number of files written.
    """
    written = 0
    os.makedirs(destination, exist_ok=True)
    for root, dirs, files in os.walk(source):
        dirs.sort()
        relative = os.path.relpath(root, source)
        target_dir = destination if relative == os.curdir else os.path.join(destination, relative)
        os.makedirs(target_dir, exist_ok=True)
        for name in sorted(files):
            src = os.path.join(root, name)
            dst = os.path.join(target_dir, name)
            if os.path.isfile(dst) and filecmp.cmp(src, dst, shallow=False):
                continue
            shutil.copy2(src, dst)
            written += 1
    return written
