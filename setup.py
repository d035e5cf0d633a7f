from setuptools import setup, find_packages
import re

VERSIONFILE="asymedia/_version.py"
verstrline = open(VERSIONFILE, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    verstr = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (VERSIONFILE,))


setup(
	# Application name:
	name="asymedia",

	# Version number (initial):
	version=verstr,

	# Packages
	packages=find_packages(exclude=["asymedia.test"]),

	# Include additional files into the package
	include_package_data=True,

	zip_safe = True,
	description="LAN media server with HTTP range request streaming",
	long_description="",

	python_requires='>=3.8',
	classifiers=[
		"Programming Language :: Python :: 3.8",
		"License :: OSI Approved :: MIT License",
		"Operating System :: OS Independent",
	],
	install_requires=[
		'aiofiles>=23.1.0',
		'cryptography',
		'h11>=0.14.0',
	],
	extras_require={
		'test': [
			'pytest',
		],
	},
	entry_points={
		'console_scripts': [
			'asymedia-server = asymedia.examples.mediaserver:main',
		],
	}
)
