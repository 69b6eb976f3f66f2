from __future__ import annotations

from pathlib import Path
from setuptools import find_packages, setup

BASE_DIR = Path(__file__).parent
README = (BASE_DIR / "readme.md").read_text(encoding="utf-8") if (BASE_DIR / "readme.md").exists() else ""

setup(
    name="team-checkin-station",
    version="0.1.0",
    description="Competition check-in station: scan or type a team code, log attendance, export CSV.",
    long_description=README,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"checkin_app.data": ["migrations/*.sql"]},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "customtkinter>=5.2.0",
        "opencv-python>=4.8.0",
        "zxing-cpp>=2.2.0",
        "Pillow>=10.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
        ]
    },
    entry_points={
        "gui_scripts": [
            "checkin-app=checkin_app.main:main",
        ],
        "console_scripts": [
            "checkin-import-teams=checkin_app.services.team_import:main",
        ],
    },
)
