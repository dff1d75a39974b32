from datetime import datetime, date, timezone

FILE_STAMP_FMT = "%Y%m%d%H%M%S"

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def file_stamp(moment: datetime | None = None) -> str:
    return (moment or utc_now()).strftime(FILE_STAMP_FMT)

def format_vietnamese_date(d: date) -> str:
    return f"ngày {d.day:02d} tháng {d.month:02d} năm {d.year}"

def format_signed_at(moment: datetime) -> str:
    return moment.strftime("%d/%m/%Y %H:%M")
