# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0


"""Shared test fakes for cargo-subspace.

Provides a scriptable fake cargo/rustc toolchain and builders for
``cargo metadata`` documents, so that individual test modules don't
need to duplicate boilerplate.

Usage::

    from tests._fakes import FakeToolchain, MetadataBuilder

    meta = MetadataBuilder(tmp_path)
    app = meta.package('app', member=True, bins=['app'])
    fake = FakeToolchain(tmp_path / 'toolchain', metadata=meta.build())
"""

from tests._fakes._cargo import FakeToolchain as FakeToolchain
from tests._fakes._metadata import MetadataBuilder as MetadataBuilder, pkg_id as pkg_id

__all__ = [
    'FakeToolchain',
    'MetadataBuilder',
    'pkg_id',
]
