from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

PORTAL_URL = "https://{school}.itslearning.com"
RESOURCE_BASE_URL = "https://resource.itslearning.com"


@dataclass(frozen=True)
class SyncConfig:
    school: str
    basedir: Path = Path("./data")
    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    session_id: Optional[str] = field(default=None, repr=False)
    skip_existing: bool = True
    selected_courses: Tuple[str, ...] = ()
    skip_courses: Tuple[str, ...] = ()
    max_concurrent_files: int = 4
    timeout: float = 30.0

    @property
    def portal_url(self) -> str:
        return PORTAL_URL.format(school=self.school)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "SyncConfig":
        """Build the config from the merged settings dict assembled by the cli"""
        return cls(
            school=config["school"],
            basedir=Path(config.get("basedir") or "./data").expanduser(),
            user=config.get("user"),
            password=config.get("password"),
            session_id=config.get("session_id"),
            skip_existing=bool(config.get("skip_existing", True)),
            selected_courses=tuple(str(c) for c in config.get("selected_courses", [])),
            skip_courses=tuple(str(c) for c in config.get("skip_courses", [])),
            max_concurrent_files=int(config.get("max_concurrent_files", 4)),
            timeout=float(config.get("timeout", 30.0)),
        )

    def wants_course(self, course_id: Any) -> bool:
        course_id = str(course_id)
        if course_id in self.skip_courses:
            return False
        return not self.selected_courses or course_id in self.selected_courses
