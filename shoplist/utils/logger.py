# shoplist/utils/logger.py
import os, sys, time

LEVELS = {"ERROR": 40, "WARN": 30, "INFO": 20, "DEBUG": 10, "NONE": 100}
_threshold = LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), LEVELS["INFO"])

def set_level(name: str) -> int:
    """Set the minimum level printed; unknown names fall back to INFO."""
    global _threshold
    _threshold = LEVELS.get((name or "").upper(), LEVELS["INFO"])
    return _threshold

def enabled(level: str) -> bool:
    return LEVELS[level] >= _threshold

def log(level: str, msg: str):
    if enabled(level):
        stream = sys.stderr if LEVELS[level] >= LEVELS["ERROR"] else sys.stdout
        print(f"[{time.strftime('%H:%M:%S')}][{level}] {msg}", file=stream)

def debug(msg): log("DEBUG", msg)
def info(msg):  log("INFO", msg)
def warn(msg):  log("WARN", msg)
def error(msg): log("ERROR", msg)
