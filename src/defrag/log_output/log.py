import logging
import sys

SUCCESS = 25
FAIL = 35

logging.addLevelName(SUCCESS, "SUCCESS")
logging.addLevelName(FAIL, "FAIL")


class ColorFormatter(logging.Formatter):
    COLOR_MAP = {
        "SUCCESS": "\033[32m",
        "WARNING": "\033[33m",
        "INFO": "\033[34m",
        "ERROR": "\033[31m",
        "FAIL": "\033[31m",
    }
    STR_BOLD = "\033[1m"
    STR_RESET = "\033[0m"

    def format(self, record):
        levelname = record.levelname
        color = self.COLOR_MAP.get(levelname, "\033[31m")
        msg = super().format(record)
        return f"{self.STR_BOLD}{color}{levelname}: {msg}{self.STR_RESET}"

# ロガー設定（レポート本文はstdoutに出すため、ログはstderrに出す）
logger = logging.getLogger("defrag")
handler = logging.StreamHandler(sys.stderr)
handler.setFormatter(ColorFormatter("%(message)s"))
logger.handlers = [handler]
logger.setLevel(logging.INFO)

log_is = True
def set_log_is(value: bool):
    global log_is
    log_is = value

LEVEL_MAP = {
    "success": SUCCESS,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "skip": logging.WARNING,
    "error": logging.ERROR,
    "fail": FAIL,
}

def log(status: str | None, message: str) -> None:
    """
    loggingモジュールを使ったログ出力関数
    status: success/info/warning/skip/error/fail など。未知のstatusはerror扱い
    """
    if not log_is:
        return
    level = LEVEL_MAP.get((status or "").lower(), logging.ERROR)
    logger.log(level, message)
