from setuptools import find_packages, setup

setup(
    name="ale-fsi",
    version="0.1.0",
    description="Partitioned ALE fluid / rigid-body interaction with generalized-alpha time integration",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "scipy",
        "petsc4py",
        "gmsh",
        "meshio",
        "pyyaml",
        "polars",
        "matplotlib",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "ale-fsi=ale_fsi.cli.run_fsi:main",
        ],
    },
)
