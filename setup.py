from setuptools import find_packages, setup

setup(
    name="readdav",
    version="0.1.0",
    description="Read-only WebDAV file server with cached directory listings",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "cheroot>=10.0.0",
        "WsgiDAV>=4.3.0",
    ],
    entry_points={
        "console_scripts": [
            "readdav=readdav.__main__:main",
        ],
    },
    python_requires=">=3.10",
    extras_require={
        "dev": [
            "pytest",
            "build",
            "twine",
        ],
    },
)
