from datetime import datetime
import pytz

IST = pytz.timezone('Asia/Kolkata')

def get_ist_time():
    """Get current time in IST"""
    return datetime.now(IST)

def format_countdown(seconds: int) -> str:
    """Format remaining quiz time as zero-padded MM:SS"""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"

def format_duration(seconds: int) -> str:
    """Format time taken for the result view, e.g. 1m 5s"""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}m {seconds % 60}s"

def format_time_for_display(dt):
    """Format datetime for display"""
    return dt.astimezone(IST).strftime("%Y-%m-%d %H:%M:%S")
