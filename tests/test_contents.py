from scenepipe.trade import ALL_CONTENTS, ContentMask, SceneContent


def test_starts_with_everything():
    mask = ContentMask()
    assert mask.value == ALL_CONTENTS
    assert SceneContent.MESHES in mask
    assert SceneContent.MESHES | SceneContent.NAMES in mask


def test_exclude_only_narrows():
    mask = ContentMask()
    mask.exclude(SceneContent.MESHES)
    mask.exclude(SceneContent.MESHES)
    assert SceneContent.MESHES not in mask
    assert SceneContent.SCENES in mask
    assert SceneContent.MESHES | SceneContent.SCENES not in mask


def test_iteration_and_intersection():
    mask = ContentMask(SceneContent.MESHES | SceneContent.NAMES)
    assert list(mask) == [SceneContent.MESHES, SceneContent.NAMES]
    assert mask.intersection(SceneContent.NAMES | SceneContent.SCENES) == SceneContent.NAMES

    mask.exclude(SceneContent.MESHES | SceneContent.NAMES)
    assert not mask
