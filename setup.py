from setuptools import setup, find_packages

setup(
    name="gridnav",
    version="1.0.0",
    packages=find_packages(include=["gridnav", "gridnav.*"]),
    install_requires=[
        "numpy>=1.21.0",
        "scipy>=1.7.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    author="gridnav Team",
    description="Sense-replan-move navigation loop for partially known grid worlds",
    python_requires=">=3.8",
)
