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


"""Project discovery for rust-analyzer.

Turns the resolved ``cargo metadata`` graph of one package into a pruned,
flat ``rust-project.json`` descriptor, including compiled proc-macro
dylibs and build-script outputs from a ``cargo check`` pre-pass.
"""

__version__ = '0.3.0'
