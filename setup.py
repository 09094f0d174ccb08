from setuptools import find_packages, setup

setup(
    name="decisionjungle",
    version="0.1.0",
    description="Decision jungles: ensembles of width-bounded decision DAGs",
    packages=find_packages(exclude=("tests", "tests.*", "examples", "examples.*")),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "torch",
        "scikit-learn",
    ],
    extras_require={
        "test": ["pytest", "pandas"],
    },
)
