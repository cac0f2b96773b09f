# setup.py
from setuptools import setup, find_packages

setup(
    name="access_scout",
    version="0.2.0",
    description="Сервис проверки доступности веб-страниц AccessScout (axe-core)",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={
        "access_scout.backends": ["jsdom_runner.js"],
        "access_scout.report": ["templates/*.j2"],
    },
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "Jinja2>=3.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
        "playwright>=1.40",
        "selenium>=4.15",
        "Pillow>=10.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "access-scout=access_scout.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
