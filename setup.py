from setuptools import setup, find_packages

setup(
    name="gapmotif",
    version="0.1.0",
    packages=find_packages(where = "src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "PyYAML",
        "Jinja2",
        "matplotlib",
    ],
    extras_require={
        "test": ["pytest"],
    },
entry_points={
            "console_scripts": [
                "gapmotif=gapmotif.cli:main",
            ],
    },
    author="Dan Levy",
    author_email="levy@cshl.edu",
    description="Streaming search for gapped IUPAC motifs in FASTA files",
)
