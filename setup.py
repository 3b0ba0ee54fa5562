# Recidiviz - a data platform for criminal justice reform
# Copyright (C) 2019 Recidiviz, Inc.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
# =============================================================================
"""Packaging for the scd_planner library.

The REQUIRED_PACKAGES are the external packages imported by ./scd_planner, and must
be manually updated any time a dependency is added to the project. The Beam
transforms in scd_planner.pipelines run on Dataflow workers, which install this
package from this file.
"""
import setuptools

REQUIRED_PACKAGES = [
    "apache-beam",
    "attrs",
    "more-itertools",
    "pytz",
    "PyYAML",
]

TEST_PACKAGES = [
    "freezegun",
    "pytest",
]

setuptools.setup(
    name="scd-planner",
    version="1.0.0",
    install_requires=REQUIRED_PACKAGES,
    extras_require={"test": TEST_PACKAGES},
    packages=setuptools.find_packages(include=["scd_planner", "scd_planner.*"]),
    python_requires=">=3.9",
)
