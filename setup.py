# This should be only one line. If it must be multi-line, indent the second
# line onwards to keep the PKG-INFO file format intact.
"""Share OpenPGP encrypted secrets among the members of groups in a vault \
directory.
"""

from setuptools import find_packages, setup

version = open("src/conspire/version.txt").read().strip()

setup(
    name="conspire",
    version=version,
    install_requires=[
        "ConfigUpdater",
        # ConfigUpdater does not manage its minimum requirements correctly.
        "setuptools>=38.3",
        "PGPy>=0.6",
        # PGPy still imports the imghdr module removed in Python 3.13.
        'standard-imghdr; python_version>="3.13"',
        "py", ],
    extras_require={
        "test": [
            "mock",
            "pytest",
            "pytest-coverage",
            "pytest-instafail",
            "pytest-timeout", ]},
    entry_points="""
        [console_scripts]
            conspire = conspire.main:main
    """,
    license="BSD (2-clause)",
    keywords="openpgp secrets vault",
    classifiers="""\
License :: OSI Approved :: BSD License
Programming Language :: Python
Programming Language :: Python :: 3
Programming Language :: Python :: 3 :: Only
"""[:-1].split("\n"),
    description=__doc__.strip(),
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={"conspire": ["version.txt"]},
    include_package_data=True,
    zip_safe=False,
    test_suite="conspire.tests",
    python_requires=">=3.8")
