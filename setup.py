"""Setup script for the school schedule builder."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="school-schedule-builder",
    version="0.1.0",
    author="School Schedule Builder",
    description="Build weekly class schedules on a time grid with breaks, autosave and exports",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "flask>=3.0.0",
        "werkzeug>=3.0.0",
        "dateparser>=1.2.0",
        "icalendar>=5.0.0",
        "pytz>=2023.3",
        "psycopg2-binary>=2.9.0",
        "pandas>=2.0.0",
        "openpyxl>=3.1.0",
        "fpdf2>=2.7.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "schedule-builder=schedule_builder.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Education",
        "Topic :: Education",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
