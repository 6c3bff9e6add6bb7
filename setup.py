from setuptools import setup, find_packages

setup(
    name="tvm_engine",
    version="0.1.0",
    description="Time value of money engine: cash flow NPV/IRR/MIRR and fixed-coupon bond pricing",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
