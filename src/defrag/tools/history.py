import os
import subprocess
from datetime import datetime, timezone


def git_last_modified(path: str) -> datetime | None:
    """
    gitの履歴から指定ファイルの最終コミット日時を取得する。

    Args:
        path (str): 対象ファイルのパス

    Returns:
        datetime|None: 最終コミット日時（UTC）。gitがない・管理外・履歴なしの場合はNone
    """
    try:
        proc = subprocess.run(
            ["git", "log", "-1", "--format=%ct", "--", os.path.basename(path)],
            cwd=os.path.dirname(os.path.abspath(path)),
            capture_output=True, text=True, check=True
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    out = proc.stdout.strip()
    if not out:
        return None
    try:
        return datetime.fromtimestamp(int(out), tz=timezone.utc)
    except ValueError:
        return None
