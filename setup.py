from setuptools import find_namespace_packages, setup


def read_requirements():
    with open("requirements.txt") as f:
        return [line for line in f.read().splitlines() if line and not line.startswith("#")]


setup(
    name="gridlauncher",
    version="0.7.0",
    description="Full-screen application grid for desktop panels with folders, search and drag-and-drop ordering",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.10",
    install_requires=read_requirements(),
    extras_require={
        "gtk": [
            "PyGObject",
        ],
        "dev": [
            "pygobject-stubs",
        ],
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "gridlauncher=gridlauncher.main:main",
        ],
    },
    packages=find_namespace_packages(include=["gridlauncher", "gridlauncher.*"]),
    include_package_data=True,
)
