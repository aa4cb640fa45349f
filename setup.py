from setuptools import setup, find_packages

setup(
    name="mkdocs-hdrdoc",
    version="1.0.0",
    description="Documentation pages with stable anchors from C header doc comments",
    keywords="mkdocs hdrdoc c headers doxygen documentation python",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "mkdocs>=1.4",
        "PyYAML>=5.1",
    ],
    extras_require={
        "test": [
            "pytest>=7",
        ],
    },
    python_requires=">=3.9",
    classifiers = [
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Documentation",
        "Topic :: Software Development :: Documentation",
        "Framework :: MkDocs",
    ],
    entry_points={
        "mkdocs.plugins": [
            "hdrdoc = mkdocs_hdrdoc.plugin:HdrdocPlugin",
        ],
        "console_scripts": [
            "hdrdoc = mkdocs_hdrdoc.cli:main",
        ],
    },
)
