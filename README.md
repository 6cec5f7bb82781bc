# zupdate

A small online updater. It downloads an XML update manifest, picks the
cheapest chain of patches (by total download size) from the installed build
to the latest one, downloads each patch file until its MD5 matches, hands
it to a patch command of your choosing, and records the new build number.

It also carries low-level pieces used by the patch format: CRC-32
(`zupdate.crc`), AES block encryption with CBC and CTR modes
(`zupdate.aes`) and the BCJ2 x86 branch converter (`zupdate.bcj2`).

## Installing

    pip install .

For running the tests:

    pip install ".[test]"
    pytest

## Command line

    zupdate URL --apply-command "COMMAND"

`URL` is the address of the update manifest. The command:

1. reads the installed build number from the version file (a missing file
   means a fresh install, build 0);
2. downloads the manifest into the download directory under the name after
   the URL's last slash, parses it and prints the latest available build;
3. for each patch on the chosen path, downloads it into the updates
   directory (a file already there whose MD5 matches is reused), runs the
   apply command, and on success writes the patch's target build to the
   version file.

Options:

| Option | Default | Meaning |
| --- | --- | --- |
| `--target-dir` | `./` | directory to patch |
| `--version-file` | `zpatcher_test.zversion` | file holding the installed build number |
| `--download-dir` | `./` | where the manifest is saved |
| `--updates-dir` | `updates` | where patch files are saved |
| `--apply-command` | none | command that applies a patch |

In `--apply-command`, `{patch}`, `{target}` and `{version}` are replaced by
the patch file, the target directory and the currently installed build. The
command is split shell-style and run directly; an exit status of 0 counts as
success. The exit status of `zupdate` is 0 on success and 1 on any error.

The version file holds the build number as an unsigned 64-bit
little-endian integer.

## What it does not do

zupdate does not itself unpack or apply patch files. Without
`--apply-command`, applying the first patch fails with "No patch applier
configured". It also does not replace its own executable or restart itself.

## Manifest format

```xml
<zupdater>
  <builds>
    <build><version>3</version><desc>Third build</desc></build>
    <build><version>2</version><desc>Second build</desc></build>
  </builds>
  <patches>
    <patch>
      <source_version>2</source_version>
      <destination_version>3</destination_version>
      <file>patch_2_to_3.zpatch</file>
      <size>1024</size>
      <md5>d41d8cd98f00b204e9800998ecf8427e</md5>
    </patch>
  </patches>
</zupdater>
```

Builds are listed newest first; reading stops at the first build not newer
than the installed one, and the highest build number seen is the latest
version. Every build needs `version` and `desc`; every patch needs
`destination_version`, `file`, `size` and `md5`, otherwise `UpdateError` is
raised. A patch with no `source_version` is a full install from build 0. A
`file` that is not an absolute `http://` or `https://` URL is resolved
against the manifest's own URL. Patches that would downgrade are ignored.
When no chain of patches reaches the latest build, a full install patch
(from build 0) to the latest build is used instead.

## Library use

```python
from zupdate.manifest import parse_update_manifest, choose_patch_path
from zupdate.checksum import md5_file, md5_matches
from zupdate.crc import crc_calc

manifest = parse_update_manifest(xml_text, "https://updates.example.com/app.xml", 2)
indices, total_size = choose_patch_path(manifest, 2)
for index in indices:
    patch = manifest.patches[index]
    print(patch.file_url, patch.file_length)

print(hex(crc_calc(b"123456789")))  # 0xcbf43926
```

`smallest_update_path(patches, source_build, target_build)` returns the
cheapest `(indices, size)` chain or `None`.

The update flow lives in `zupdate.updater`: `read_current_version`,
`save_version`, `simple_download_file`, `check_for_updates` (returns the
manifest and the chosen patch indices) and `download_and_apply`, which takes
an `apply_patch(patch_file, target_dir, current_version)` callable returning
whether the patch was applied. Downloads go through
`zupdate.downloader.FileDownloader`, which raises `DownloadError` on failure
and reports progress through a `progress(total, now)` callback.

Other pieces:

- `zupdate.aes`: `AesCipher(key)` with `encrypt_block` / `decrypt_block`,
  and `cbc_encrypt`, `cbc_decrypt`, `ctr_code` over whole 16-byte blocks.
- `zupdate.bcj2`: `bcj2_encode(data)` returns a `Bcj2Streams` of `main`,
  `call`, `jump` and `rc`; `bcj2_decode(main, call, jump, rc, out_size)`
  rebuilds the data or raises `Bcj2Error`.