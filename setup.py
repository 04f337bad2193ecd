from setuptools import setup, find_packages

setup(
    name="putiosync",
    version="0.1.0",
    description="Mirror a put.io folder onto a local directory",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.0",
        "requests>=2.28",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "putiosync=putiosync.cli:main",
        ],
    },
)
