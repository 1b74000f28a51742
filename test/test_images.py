import base64
from io import BytesIO

import pytest
from chalice.app import Request
from PIL import Image
from requests_toolbelt.multipart.encoder import MultipartEncoder

from chalicelib.constants.constants import MAIN_IMAGE_NAME, THUMB_IMAGE_NAME, ROLE_OWNER
from chalicelib.constants.status_codes import http200, http400, http403, http404
from chalicelib.images import get_resize_width_height, compress_images, image_upload
from test.utils.fixtures import id_owner


def image_bytes(size=(400, 300), image_format='PNG'):
    buffer = BytesIO()
    Image.new('RGBA', size, (200, 30, 30, 255)).save(buffer, format=image_format)
    return buffer.getvalue()


def upload(fields, token=id_owner):
    """
    Calls the handler with the event API Gateway builds for a binary multipart body
    """
    multipart_data = MultipartEncoder(fields=fields)
    request = Request({
        'multiValueQueryStringParameters': None,
        'headers': {'content-type': multipart_data.content_type, 'authorization': token},
        'pathParameters': None,
        'requestContext': {'httpMethod': 'POST', 'resourcePath': '/image-upload'},
        'stageVariables': None,
        'body': base64.b64encode(multipart_data.to_string()).decode('ascii'),
        'isBase64Encoded': True
    })
    return image_upload(request)


def test_resize_never_upscales():
    assert get_resize_width_height(Image.new('RGB', (2048, 1024)), 1024) == (1024, 512)
    assert get_resize_width_height(Image.new('RGB', (300, 600)), 200) == (100, 200)
    assert get_resize_width_height(Image.new('RGB', (120, 80)), 1024) == (120, 80)


def test_compress_images_returns_jpeg_main_and_thumbnail():
    main, thumb = compress_images(BytesIO(image_bytes((1600, 1200))))
    main_image, thumb_image = Image.open(BytesIO(main)), Image.open(BytesIO(thumb))
    assert main_image.format == 'JPEG'
    assert max(main_image.size) <= 1024
    assert max(thumb_image.size) <= 200


@pytest.mark.local_db_test
def test_put_restaurant_image(seed, fake_s3):
    restaurant_id = seed.restaurant()
    response = upload({
        'fileContent': ('warung.png', BytesIO(image_bytes()), 'image/png'),
        'entityType': 'restaurant',
        'restaurantId': restaurant_id
    })
    assert response.status_code == http200, response.body
    assert response.body['message'] == 'restaurant image was updated successfully'

    folder = f'restaurants/{restaurant_id}/images'
    assert set(fake_s3.objects) == {f'{folder}/{MAIN_IMAGE_NAME}', f'{folder}/{THUMB_IMAGE_NAME}'}
    main = fake_s3.objects[f'{folder}/{MAIN_IMAGE_NAME}']
    assert main['extra_args'] == {'ContentType': 'image/jpeg'}
    assert main['acl'] == 'public-read'
    assert main['body'][:2] == b'\xff\xd8'

    restaurant = seed.get_restaurant(restaurant_id)
    assert restaurant['image'] == response.body['image']
    assert restaurant['image'].endswith(f'{folder}/{MAIN_IMAGE_NAME}')
    assert restaurant['thumbnail'].endswith(f'{folder}/{THUMB_IMAGE_NAME}')
    assert restaurant['updated_by'] == id_owner


@pytest.mark.local_db_test
def test_put_menu_item_image(seed, fake_s3):
    restaurant_id = seed.restaurant()
    menu_item_id = seed.menu_item(restaurant_id, 18000)
    response = upload({
        'fileContent': ('nasi.png', BytesIO(image_bytes()), 'image/png'),
        'entityType': 'menu_item',
        'restaurantId': restaurant_id,
        'menuItemId': menu_item_id
    })
    assert response.status_code == http200, response.body
    assert f'restaurants/{restaurant_id}/menu_items/{menu_item_id}/images/{MAIN_IMAGE_NAME}' in fake_s3.objects

    missing = upload({
        'fileContent': ('nasi.png', BytesIO(image_bytes()), 'image/png'),
        'entityType': 'menu_item',
        'restaurantId': restaurant_id,
        'menuItemId': 'unknown'
    })
    assert missing.status_code == http404


@pytest.mark.local_db_test
def test_image_upload_validation(seed, fake_s3):
    restaurant_id = seed.restaurant()
    not_an_image = upload({
        'fileContent': ('notes.txt', BytesIO(b'definitely not an image'), 'text/plain'),
        'restaurantId': restaurant_id
    })
    assert not_an_image.status_code == http400

    wrong_entity = upload({
        'fileContent': ('warung.png', BytesIO(image_bytes()), 'image/png'),
        'entityType': 'review',
        'restaurantId': restaurant_id
    })
    assert wrong_entity.status_code == http400

    no_restaurant = upload({'fileContent': ('warung.png', BytesIO(image_bytes()), 'image/png')})
    assert no_restaurant.status_code == http400
    assert fake_s3.objects == {}


@pytest.mark.local_db_test
def test_image_upload_to_foreign_restaurant(seed, fake_s3):
    restaurant_id = seed.restaurant()
    response = upload({
        'fileContent': ('warung.png', BytesIO(image_bytes()), 'image/png'),
        'restaurantId': restaurant_id
    }, token=seed.user(role=ROLE_OWNER))
    assert response.status_code == http403
    assert fake_s3.objects == {}
