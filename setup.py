"""
Setup file.
"""

from pathlib import Path

from setuptools import find_packages, setup

URL = "https://github.com/supervised-process/supervised-process"
KEYWORDS = "subprocess child process non-blocking pipes timeout supervisor"
HERE = Path(__file__).parent


if __name__ == "__main__":
    setup(
        name="supervised-process",
        version="1.0.0",
        description="Poll-driven child process supervision with non-blocking stream pumping.",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.12",
        package_dir={"": "src"},
        packages=find_packages("src"),
        install_requires=["psutil"],
        extras_require={"test": ["pytest"]},
        entry_points={"console_scripts": ["supervised-process=supervised_process.cli:main"]},
        include_package_data=True,
    )
